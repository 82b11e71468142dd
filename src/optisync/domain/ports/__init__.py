"""Domain port definitions for adapters."""

from __future__ import annotations

from .notifications import Notification, NotificationLevel, Notifier
from .remote import UserService
from .storage import DurableSlot

__all__ = [
    "DurableSlot",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "UserService",
]
