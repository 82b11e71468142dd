"""Durable queue of mutations that the server has not confirmed yet."""

from __future__ import annotations

import json
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

from optisync.domain.errors import StorageUnavailableError
from optisync.domain.model import PendingMutation, utcnow

if TYPE_CHECKING:
    from optisync.domain.model import Clock
    from optisync.domain.ports import DurableSlot

log = getLogger(__name__)

DEFAULT_MAX_AGE: Final[timedelta] = timedelta(minutes=5)


class PersistentMutationLog:
    """Pending mutations stored as one JSON array in a single durable slot.

    The whole queue is read and rewritten on every change. This is not safe
    across processes; one active process per slot is assumed.

    If the slot fails, the log keeps working from memory for the rest of the
    session (``degraded`` becomes true) rather than failing the mutation.
    """

    def __init__(
        self,
        slot: DurableSlot,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Clock = utcnow,
    ) -> None:
        self._slot = slot
        self._max_age = max_age
        self._clock = clock
        self._memory: list[PendingMutation] | None = None
        self._last_known: list[PendingMutation] = []
        self.list()

    @property
    def degraded(self) -> bool:
        return self._memory is not None

    def append(self, mutation: PendingMutation) -> PendingMutation:
        mutations = self.list()
        mutations.append(mutation)
        self._save(mutations)
        return mutation

    def list(self) -> list[PendingMutation]:
        """Return live entries, dropping (and persisting the removal of) stale ones."""
        stored = self._load()
        now = self._clock()
        fresh = [m for m in stored if now - m.timestamp < self._max_age]
        if len(fresh) != len(stored):
            log.info("Discarding %d stale pending mutation(s)", len(stored) - len(fresh))
            self._save(fresh)
        return fresh

    def get(self, mutation_id: str) -> PendingMutation | None:
        return next((m for m in self.list() if m.id == mutation_id), None)

    def remove(self, mutation_id: str) -> None:
        mutations = self.list()
        remaining = [m for m in mutations if m.id != mutation_id]
        if len(remaining) != len(mutations):
            self._save(remaining)

    def clear(self) -> None:
        if self._memory is not None:
            self._memory = []
            return
        try:
            self._slot.clear()
        except StorageUnavailableError:
            self._degrade([])
            return
        self._last_known = []

    def __len__(self) -> int:
        return len(self.list())

    def _load(self) -> list[PendingMutation]:
        if self._memory is not None:
            return list(self._memory)
        try:
            raw = self._slot.read()
        except StorageUnavailableError:
            self._degrade(self._last_known)
            return list(self._last_known)
        self._last_known = _decode(raw)
        return list(self._last_known)

    def _save(self, mutations: list[PendingMutation]) -> None:
        if self._memory is not None:
            self._memory = list(mutations)
            return
        encoded = json.dumps([m.to_record() for m in mutations])
        try:
            self._slot.write(encoded)
        except StorageUnavailableError:
            self._degrade(mutations)
            return
        self._last_known = list(mutations)

    def _degrade(self, mutations: list[PendingMutation]) -> None:
        log.warning("Durable mutation store unavailable; continuing in memory for this session")
        self._memory = list(mutations)


def _decode(raw: str | None) -> list[PendingMutation]:
    if raw is None or not raw.strip():
        return []
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Pending mutation queue is not valid JSON; treating it as empty")
        return []
    if not isinstance(loaded, list):
        log.warning("Pending mutation queue is not a JSON array; treating it as empty")
        return []
    mutations: list[PendingMutation] = []
    for record in cast(list[Any], loaded):
        try:
            mutations.append(PendingMutation.from_record(record))
        except ValueError as exc:
            log.warning("Skipping malformed pending mutation: %s", exc)
    return mutations
