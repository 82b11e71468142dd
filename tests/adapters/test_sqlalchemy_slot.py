from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine  # noqa: TC002

from optisync.adapters.sqlalchemy import (
    SqlAlchemyDurableSlot,
    StartupError,
    UnavailableDurableSlot,
    configured_engine,
    durable_slot,
    durable_slot_table,
    startup,
)
from optisync.domain.errors import StorageUnavailableError
from optisync.domain.model import PendingMutation
from optisync.domain.mutation_log import PersistentMutationLog
from optisync.domain.ports import DurableSlot

from tests.helpers.users import FakeClock


def test_slot_reads_none_until_written(sqlite_engine: Engine) -> None:
    slot = SqlAlchemyDurableSlot(sqlite_engine, "pending-mutations")

    assert isinstance(slot, DurableSlot)
    assert slot.read() is None

    slot.write("[]")
    slot.write('["x"]')

    assert slot.read() == '["x"]'
    with sqlite_engine.connect() as connection:
        rows = connection.execute(select(durable_slot_table)).all()
    assert len(rows) == 1
    assert rows[0].updated_at.tzinfo is not None


def test_slots_are_isolated_by_key(sqlite_engine: Engine) -> None:
    first = SqlAlchemyDurableSlot(sqlite_engine, "a")
    second = SqlAlchemyDurableSlot(sqlite_engine, "b")

    first.write("one")
    second.write("two")
    first.clear()

    assert first.read() is None
    assert second.read() == "two"


def test_missing_table_surfaces_as_storage_unavailable() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    slot = SqlAlchemyDurableSlot(engine, "pending-mutations")

    with pytest.raises(StorageUnavailableError):
        slot.read()
    with pytest.raises(StorageUnavailableError):
        slot.write("[]")


def test_mutation_log_round_trips_through_database(sqlite_engine: Engine) -> None:
    clock = FakeClock()
    slot = SqlAlchemyDurableSlot(sqlite_engine, "pending-mutations")
    mutation = PersistentMutationLog(slot, clock=clock).append(
        PendingMutation.delete("u1", now=clock())
    )

    reopened = PersistentMutationLog(
        SqlAlchemyDurableSlot(sqlite_engine, "pending-mutations"), clock=clock
    )

    assert reopened.list() == [mutation]
    assert not reopened.degraded


def test_startup_manages_a_single_engine(sqlite_engine: Engine) -> None:
    with pytest.raises(StartupError):
        durable_slot("pending-mutations")

    startup(engine=sqlite_engine)

    assert configured_engine() is sqlite_engine
    with pytest.raises(StartupError):
        startup(engine=sqlite_engine)
    durable_slot("pending-mutations").write("[]")
    assert SqlAlchemyDurableSlot(sqlite_engine, "pending-mutations").read() == "[]"


def test_startup_reports_an_unopenable_database_as_unavailable(tmp_path: Path) -> None:
    missing = tmp_path / "missing" / "nested" / "optisync.db"

    with pytest.raises(StorageUnavailableError, match="Could not open the database"):
        startup(database_uri=f"sqlite+pysqlite:///{missing}")

    assert configured_engine() is None


def test_startup_reports_an_uncreatable_data_dir_as_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("OPTISYNC_DATA_DIR", str(blocker / "data"))

    with pytest.raises(StorageUnavailableError):
        startup()

    assert configured_engine() is None


def test_unavailable_slot_degrades_the_log() -> None:
    log = PersistentMutationLog(UnavailableDurableSlot("disk gone"))

    assert log.degraded
    assert log.list() == []
