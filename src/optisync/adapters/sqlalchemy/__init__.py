"""SQLAlchemy adapter package for optisync."""

from __future__ import annotations

from .mappings import create_all_tables, durable_slot_table, mapper_registry
from .slot import SqlAlchemyDurableSlot, UnavailableDurableSlot
from .state import (
    StartupError,
    configured_engine,
    durable_slot,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyDurableSlot",
    "StartupError",
    "UnavailableDurableSlot",
    "configured_engine",
    "create_all_tables",
    "durable_slot",
    "durable_slot_table",
    "is_started",
    "mapper_registry",
    "shutdown",
    "startup",
]
