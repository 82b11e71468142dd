from __future__ import annotations

import logging

import pytest

from optisync.adapters.notifications import LoggingNotifier, RecordingNotifier
from optisync.domain.ports import Notification, NotificationLevel, Notifier


def test_logging_notifier_maps_levels(caplog: pytest.LogCaptureFixture) -> None:
    notifier = LoggingNotifier()

    with caplog.at_level(logging.DEBUG, logger="optisync.notifications"):
        notifier.notify(Notification(NotificationLevel.LOADING, "Deleting user...", "delete-user"))
        notifier.notify(Notification(NotificationLevel.ERROR, "Failed to delete user"))

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.DEBUG, "[delete-user] Deleting user..."),
        (logging.ERROR, "Failed to delete user"),
    ]


def test_recording_notifier_filters_by_level() -> None:
    notifier = RecordingNotifier()
    notifier.notify(Notification(NotificationLevel.SUCCESS, "done"))
    notifier.notify(Notification(NotificationLevel.INFO, "fyi"))

    assert isinstance(notifier, Notifier)
    assert notifier.messages() == ["done", "fyi"]
    assert notifier.messages(NotificationLevel.INFO) == ["fyi"]
