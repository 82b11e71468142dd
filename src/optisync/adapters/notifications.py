"""Notification sinks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from optisync.domain.ports import Notification, NotificationLevel

if TYPE_CHECKING:
    from optisync.domain.ports import Notifier

_LEVELS: Final[dict[NotificationLevel, int]] = {
    NotificationLevel.LOADING: logging.DEBUG,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Forward notifications to a standard library logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("optisync.notifications")

    def notify(self, notification: Notification) -> None:
        if notification.key:
            self._logger.log(
                _LEVELS[notification.level], "[%s] %s", notification.key, notification.message
            )
        else:
            self._logger.log(_LEVELS[notification.level], "%s", notification.message)


class RecordingNotifier:
    """Keeps every notification in order; useful for tests and scripted callers."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def messages(self, level: NotificationLevel | None = None) -> list[str]:
        return [n.message for n in self.notifications if level is None or n.level is level]


if TYPE_CHECKING:
    _logging_check: Notifier = LoggingNotifier()
    _recording_check: Notifier = RecordingNotifier()
