"""Port for lifecycle notifications sent to a presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


class NotificationLevel(StrEnum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    message: str
    # Notifications sharing a key replace each other (loading -> success).
    key: str | None = None


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget sink; the engine never depends on its behaviour."""

    def notify(self, notification: Notification) -> None: ...
