"""In-memory entity cache shared by every consumer of the user collection.

The cache keeps three co-located views:

* the ordered collection (``None`` until first loaded),
* a keyed single-user view,
* derived aggregates (counts, summaries) computed from the collection.

Writes are synchronous total replacements: an updater receives the old value
and returns the new one, so readers never observe a half-applied edit.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from optisync.domain.model import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime, timedelta

    from optisync.domain.model import Clock, User

    CollectionUpdater = Callable[[tuple[User, ...] | None], Iterable[User] | None]
    EntityUpdater = Callable[[User | None], User | None]
    InvalidationListener = Callable[[str], None]

log = getLogger(__name__)

COLLECTION_KEY: Final[str] = "users"
AGGREGATES_KEY: Final[str] = "users.aggregates"


def _ensure_unique(users: tuple[User, ...]) -> tuple[User, ...]:
    seen: set[str] = set()
    for user in users:
        if user.id in seen:
            raise ValueError(f"Duplicate user id in collection: {user.id}")
        seen.add(user.id)
    return users


class EntityCache:
    """Shared user views.

    With ``fresh_for`` set, a key marked fresh turns stale again once that much
    time has passed on ``clock``.
    """

    def __init__(self, *, fresh_for: timedelta | None = None, clock: Clock = utcnow) -> None:
        self._fresh_for = fresh_for
        self._clock = clock
        self._loaded_at: dict[str, datetime] = {}
        self._collection: tuple[User, ...] | None = None
        self._entities: dict[str, User] = {}
        self._aggregates: dict[str, object] = {}
        self._stale: set[str] = set()
        self._listeners: list[InvalidationListener] = []

    # reads

    def read_collection(self) -> tuple[User, ...] | None:
        return self._collection

    def read(self, user_id: str) -> User | None:
        return self._entities.get(user_id)

    def read_aggregate(self, name: str) -> object | None:
        return self._aggregates.get(name)

    def is_stale(self, key: str) -> bool:
        if key in self._stale:
            return True
        loaded_at = self._loaded_at.get(key)
        if loaded_at is None or self._fresh_for is None:
            return False
        return self._clock() - loaded_at >= self._fresh_for

    # writes

    def write_collection(self, updater: CollectionUpdater) -> tuple[User, ...] | None:
        updated = updater(self._collection)
        self._collection = None if updated is None else _ensure_unique(tuple(updated))
        return self._collection

    def write(self, user_id: str, updater: EntityUpdater) -> User | None:
        updated = updater(self._entities.get(user_id))
        if updated is None:
            self._entities.pop(user_id, None)
            return None
        if updated.id != user_id:
            raise ValueError(f"Updater for {user_id} returned user {updated.id}")
        self._entities[user_id] = updated
        return updated

    def remove(self, user_id: str) -> None:
        """Drop ``user_id`` from both the collection and the keyed view."""
        if self._collection is not None:
            self._collection = tuple(user for user in self._collection if user.id != user_id)
        self._entities.pop(user_id, None)

    def write_aggregate(self, name: str, value: object) -> None:
        self._aggregates[name] = value

    def mark_fresh(self, key: str) -> None:
        self._stale.discard(key)
        self._loaded_at[key] = self._clock()

    # invalidation

    def subscribe(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register ``listener`` for invalidation events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def invalidate(self, key: str) -> None:
        if key == AGGREGATES_KEY:
            self._aggregates.clear()
        else:
            self._stale.add(key)
        log.debug("Invalidated cache key %s", key)
        for listener in tuple(self._listeners):
            listener(key)
