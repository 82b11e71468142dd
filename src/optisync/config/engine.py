"""Timing and storage-key defaults for the mutation engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from .env import optional_float_env

DEFAULT_UNDO_WINDOW_SECONDS = 5.0
DEFAULT_STALENESS_MINUTES = 5.0
DEFAULT_FRESH_MINUTES = 5.0
DEFAULT_QUEUE_KEY = "pending-mutations"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    undo_window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS
    staleness_minutes: float = DEFAULT_STALENESS_MINUTES
    queue_key: str = DEFAULT_QUEUE_KEY
    fresh_minutes: float = DEFAULT_FRESH_MINUTES

    @property
    def staleness(self) -> timedelta:
        return timedelta(minutes=self.staleness_minutes)

    @property
    def freshness(self) -> timedelta:
        """How long a loaded user list is served before it is fetched again."""
        return timedelta(minutes=self.fresh_minutes)


def get_engine_config() -> EngineConfig:
    queue_key = os.getenv("OPTISYNC_QUEUE_KEY")
    return EngineConfig(
        undo_window_seconds=optional_float_env(
            "OPTISYNC_UNDO_WINDOW_SECONDS", DEFAULT_UNDO_WINDOW_SECONDS
        ),
        staleness_minutes=optional_float_env(
            "OPTISYNC_STALENESS_MINUTES", DEFAULT_STALENESS_MINUTES
        ),
        queue_key=queue_key.strip() if queue_key and queue_key.strip() else DEFAULT_QUEUE_KEY,
        fresh_minutes=optional_float_env("OPTISYNC_FRESH_MINUTES", DEFAULT_FRESH_MINUTES),
    )
