"""Durable key/value slot stored in a relational database."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from optisync.domain.errors import StorageUnavailableError

from .mappings import durable_slot_table

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from optisync.domain.ports import DurableSlot

log = getLogger(__name__)


class SqlAlchemyDurableSlot:
    """Stores one string value under ``key``.

    Every database failure surfaces as ``StorageUnavailableError`` so callers
    can degrade instead of crashing.

    Calls block the calling thread, event loop included; each one is a single
    short statement against the local database.
    """

    def __init__(self, engine: Engine, key: str) -> None:
        self._engine = engine
        self.key = key

    def read(self) -> str | None:
        statement = select(durable_slot_table.c.value).where(durable_slot_table.c.key == self.key)
        try:
            with self._engine.connect() as connection:
                return connection.execute(statement).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Could not read slot {self.key!r}: {exc}") from exc

    def write(self, value: str) -> None:
        now = datetime.now(UTC)
        try:
            with self._engine.begin() as connection:
                result = connection.execute(
                    update(durable_slot_table)
                    .where(durable_slot_table.c.key == self.key)
                    .values(value=value, updated_at=now)
                )
                if result.rowcount == 0:
                    connection.execute(
                        insert(durable_slot_table).values(key=self.key, value=value, updated_at=now)
                    )
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Could not write slot {self.key!r}: {exc}") from exc
        log.debug("Wrote %d byte(s) to slot %s", len(value), self.key)

    def clear(self) -> None:
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    delete(durable_slot_table).where(durable_slot_table.c.key == self.key)
                )
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Could not clear slot {self.key!r}: {exc}") from exc


class UnavailableDurableSlot:
    """Stand-in for a store that could not be opened; every call raises."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def read(self) -> str | None:
        raise StorageUnavailableError(self.reason)

    def write(self, value: str) -> None:
        _ = value
        raise StorageUnavailableError(self.reason)

    def clear(self) -> None:
        raise StorageUnavailableError(self.reason)


if TYPE_CHECKING:
    _slot_check: DurableSlot = UnavailableDurableSlot("")
