"""Process-wide SQLAlchemy engine lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from optisync.config import get_database_config
from optisync.domain.errors import StorageUnavailableError

from .mappings import create_all_tables
from .slot import SqlAlchemyDurableSlot

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy adapter is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Initialise the SQLAlchemy engine and create missing tables.

    A database that cannot be opened or created raises ``StorageUnavailableError``.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )
    if _STATE.engine is not None:
        _STATE.engine.dispose()
        _STATE.engine = None

    resolved_engine: Engine | None = engine
    try:
        if resolved_engine is None:
            resolved_engine = create_engine(database_uri or get_database_config().uri)
        create_all_tables(resolved_engine)
    except (SQLAlchemyError, OSError) as exc:
        if resolved_engine is not None and engine is None:
            resolved_engine.dispose()
        raise StorageUnavailableError(f"Could not open the database: {exc}") from exc
    _STATE.engine = resolved_engine
    return resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def durable_slot(key: str) -> SqlAlchemyDurableSlot:
    if _STATE.engine is None:
        raise StartupError(
            "SQLAlchemy adapter not initialised. Call optisync.adapters.sqlalchemy."
            "startup() before requesting a durable slot."
        )
    return SqlAlchemyDurableSlot(_STATE.engine, key)
