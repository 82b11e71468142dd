from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from optisync.adapters.sqlalchemy import create_all_tables, shutdown

from tests.helpers.users import make_user

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator

    from optisync.domain.model import User


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(autouse=True)
def _reset_sqlalchemy_state() -> Iterator[None]:
    yield
    shutdown()


@pytest.fixture
def users() -> list[User]:
    return [
        make_user("u1", name="Ada", email="ada@example.com", role="Admin"),
        make_user("u2", name="Ben", email="ben@example.com", role="Editor"),
        make_user("u3", name="Cleo", email="cleo@example.com", role="Viewer", active=False),
    ]
