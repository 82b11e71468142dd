"""Optimistic mutation protocol around the remote users service.

Every mutation follows the same steps, serialised through one
``SequentialLock``:

1) snapshot the affected cache state
2) append a pending mutation to the durable log
3) apply the expected effect to the cache
4) call the remote service
5) on success reconcile the cache with the server's answer,
   on failure restore the snapshot; the log entry is removed either way
6) invalidate derived aggregates

Bulk deletion can additionally be staged behind the undo registry, in which
case step 4 only happens once the undo window has expired.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from optisync.domain.cache import AGGREGATES_KEY, COLLECTION_KEY
from optisync.domain.conflicts import ConflictDetector, Resolution
from optisync.domain.errors import (
    ConflictDetectedError,
    EntityNotFoundError,
    EntityVanishedError,
    RemoteServiceError,
)
from optisync.domain.lock import SequentialLock
from optisync.domain.model import PendingMutation, new_temporary_id, utcnow
from optisync.domain.ports import Notification, NotificationLevel
from optisync.domain.replay import ReplayResult, replay_pending_mutations
from optisync.domain.stats import USER_STATS_AGGREGATE, UserStats, summarize_users

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from optisync.domain.cache import EntityCache
    from optisync.domain.conflicts import ConflictReport
    from optisync.domain.model import Clock, User, UserDraft, UserPatch
    from optisync.domain.mutation_log import PersistentMutationLog
    from optisync.domain.ports import Notifier, UserService
    from optisync.domain.undo import UndoOperation, UndoRegistry

log = getLogger(__name__)


@dataclass(slots=True)
class EngineContext:
    """Process-wide state owned by one orchestrator."""

    cache: EntityCache
    log: PersistentMutationLog
    undo: UndoRegistry
    notifier: Notifier
    lock: SequentialLock = field(default_factory=SequentialLock)
    clock: Clock = utcnow


@dataclass(frozen=True, slots=True)
class RestoreResult:
    """Outcome of an undo: users re-created server-side and users that already existed."""

    restored: tuple[User, ...] = ()
    skipped: tuple[User, ...] = ()


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _map_user(
    users: tuple[User, ...] | None,
    user_id: str,
    transform: Callable[[User], User],
) -> tuple[User, ...] | None:
    if users is None:
        return None
    return tuple(transform(user) if user.id == user_id else user for user in users)


def _swap_placeholder(
    users: tuple[User, ...] | None,
    placeholder_id: str,
    created: User,
) -> tuple[User, ...]:
    current = users or ()
    swapped = tuple(
        created if user.id == placeholder_id else user
        for user in current
        if user.id != created.id
    )
    if not any(user.id == created.id for user in swapped):
        swapped = (*swapped, created)
    return swapped


def _unique_ids(user_ids: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(user_ids))


class MutationOrchestrator:
    def __init__(
        self,
        service: UserService,
        context: EngineContext,
        *,
        detector: ConflictDetector | None = None,
    ) -> None:
        self._service = service
        self._context = context
        self._detector = detector or ConflictDetector()

    @property
    def context(self) -> EngineContext:
        return self._context

    @property
    def _cache(self) -> EntityCache:
        return self._context.cache

    @property
    def _log(self) -> PersistentMutationLog:
        return self._context.log

    # ------------------------------------------------------------------ reads

    async def load_users(self, *, force: bool = False) -> tuple[User, ...]:
        """Return the cached collection, fetching it when absent, stale or forced."""
        return await self._context.lock.run(lambda: self._load_users(force=force))

    async def _load_users(self, *, force: bool) -> tuple[User, ...]:
        cached = self._cache.read_collection()
        if cached is not None and not force and not self._cache.is_stale(COLLECTION_KEY):
            return cached

        users = tuple(await self._service.list_users())
        self._cache.write_collection(lambda _old: users)
        self._cache.mark_fresh(COLLECTION_KEY)
        for user in users:
            # keep already-cached single entries in agreement with the list
            self._cache.write(user.id, lambda old, user=user: user if old is not None else None)
        self._cache.invalidate(AGGREGATES_KEY)
        log.debug("Loaded %d user(s)", len(users))
        return users

    async def load_user(self, user_id: str) -> User:
        """Return one user, seeded from the collection when it is already cached."""
        return await self._context.lock.run(lambda: self._load_user(user_id))

    async def _load_user(self, user_id: str) -> User:
        cached = self._cache.read(user_id)
        if cached is not None:
            return cached
        from_collection = next(
            (user for user in self._cache.read_collection() or () if user.id == user_id),
            None,
        )
        if from_collection is not None:
            self._cache.write(user_id, lambda _old: from_collection)
            return from_collection

        try:
            fetched = await self._service.get_user(user_id)
        except EntityNotFoundError:
            self._cache.remove(user_id)
            raise
        self._cache.write(user_id, lambda _old: fetched)
        return fetched

    async def user_stats(self) -> UserStats:
        cached = self._cache.read_aggregate(USER_STATS_AGGREGATE)
        if isinstance(cached, UserStats):
            return cached
        stats = summarize_users(await self.load_users())
        self._cache.write_aggregate(USER_STATS_AGGREGATE, stats)
        return stats

    # -------------------------------------------------------------- mutations

    async def create_user(self, draft: UserDraft) -> User:
        return await self._context.lock.run(lambda: self._create_user(draft))

    async def _create_user(self, draft: UserDraft) -> User:
        now = self._context.clock()
        previous = self._cache.read_collection()
        mutation = self._log.append(PendingMutation.create(draft, now=now))

        placeholder = draft.to_user(id=new_temporary_id(now=now), created_at=now)
        # An unloaded collection stays unloaded; the next load fetches the full list.
        self._cache.write_collection(lambda old: None if old is None else (*old, placeholder))
        self._notify(NotificationLevel.LOADING, "Creating user...", key="create-user")

        try:
            created = await self._service.create_user(draft)
        except RemoteServiceError as exc:
            self._log.remove(mutation.id)
            self._cache.write_collection(lambda _old: previous)
            log.warning("Create of %s rolled back: %s", draft.email, exc)
            self._notify(
                NotificationLevel.ERROR,
                exc.message or "Failed to create user",
                key="create-user",
            )
            raise
        else:
            self._log.remove(mutation.id)
            self._cache.write_collection(
                lambda old: None if old is None else _swap_placeholder(old, placeholder.id, created)
            )
            self._cache.write(created.id, lambda _old: created)
            self._notify(NotificationLevel.SUCCESS, "User created successfully", key="create-user")
            return created
        finally:
            self._settle()

    async def update_user(self, user_id: str, patch: UserPatch) -> User:
        return await self._context.lock.run(lambda: self._update_user(user_id, patch))

    async def _update_user(self, user_id: str, patch: UserPatch) -> User:
        previous_collection = self._cache.read_collection()
        previous_user = self._cache.read(user_id)
        mutation = self._log.append(
            PendingMutation.update(user_id, patch, now=self._context.clock())
        )

        self._cache.write_collection(
            lambda old: _map_user(old, user_id, lambda user: user.merged(patch))
        )
        self._cache.write(user_id, lambda old: old.merged(patch) if old is not None else None)
        self._notify(NotificationLevel.LOADING, "Updating user...", key="update-user")

        try:
            updated = await self._service.update_user(user_id, patch)
        except EntityNotFoundError as exc:
            # Gone server-side: evict instead of rolling back.
            self._log.remove(mutation.id)
            self._cache.remove(user_id)
            log.info("User %s vanished server-side; evicted from cache", user_id)
            self._notify(
                NotificationLevel.ERROR,
                "User no longer exists. It may have been deleted by another user.",
                key="update-user",
            )
            raise EntityVanishedError(user_id, exc.message) from exc
        except RemoteServiceError as exc:
            self._log.remove(mutation.id)
            self._cache.write_collection(lambda _old: previous_collection)
            self._cache.write(user_id, lambda _old: previous_user)
            log.warning("Update of %s rolled back: %s", user_id, exc)
            self._notify(NotificationLevel.ERROR, "Failed to update user", key="update-user")
            raise
        else:
            self._log.remove(mutation.id)
            self._cache.write_collection(lambda old: _map_user(old, user_id, lambda _user: updated))
            self._cache.write(user_id, lambda _old: updated)
            self._notify(NotificationLevel.SUCCESS, "User updated successfully", key="update-user")
            return updated
        finally:
            self._settle()

    async def update_user_checked(self, user_id: str, patch: UserPatch) -> User:
        """Update after verifying the cached copy still matches the server.

        Raises ``ConflictDetectedError`` without touching the cache when the
        server copy differs; the caller then picks a ``Resolution``.
        """
        local = self._cache.read(user_id) or next(
            (user for user in self._cache.read_collection() or () if user.id == user_id),
            None,
        )
        check = await self._detector.check(local, lambda: self._service.get_user(user_id))
        if check.has_conflict and check.report is not None:
            self._notify(
                NotificationLevel.WARNING,
                "This user was modified by another user while you were editing.",
                key="update-user",
            )
            raise ConflictDetectedError(check.report)
        return await self.update_user(user_id, patch)

    async def resolve_conflict(
        self,
        report: ConflictReport,
        resolution: Resolution,
        patch: UserPatch,
    ) -> User:
        if resolution is Resolution.OVERWRITE:
            return await self.update_user(report.server_version.id, patch)
        return await self._context.lock.run(lambda: self._keep_server_version(report))

    async def _keep_server_version(self, report: ConflictReport) -> User:
        server = report.server_version
        self._cache.write_collection(lambda old: _map_user(old, server.id, lambda _user: server))
        self._cache.write(server.id, lambda _old: server)
        self._notify(NotificationLevel.INFO, "Kept the server version", key="update-user")
        self._settle()
        return server

    async def delete_user(self, user_id: str) -> None:
        await self._context.lock.run(lambda: self._delete_user(user_id))

    async def _delete_user(self, user_id: str) -> None:
        previous_collection = self._cache.read_collection()
        previous_user = self._cache.read(user_id)
        mutation = self._log.append(PendingMutation.delete(user_id, now=self._context.clock()))

        self._cache.remove(user_id)
        self._notify(NotificationLevel.LOADING, "Deleting user...", key="delete-user")

        try:
            await self._service.delete_user(user_id)
        except EntityNotFoundError:
            self._log.remove(mutation.id)
            log.info("User %s was already deleted server-side", user_id)
            self._notify(
                NotificationLevel.INFO,
                "User was already deleted by another user.",
                key="delete-user",
            )
        except RemoteServiceError as exc:
            self._log.remove(mutation.id)
            self._cache.write_collection(lambda _old: previous_collection)
            self._cache.write(user_id, lambda _old: previous_user)
            log.warning("Delete of %s rolled back: %s", user_id, exc)
            self._notify(NotificationLevel.ERROR, "Failed to delete user", key="delete-user")
            raise
        else:
            self._log.remove(mutation.id)
            self._notify(NotificationLevel.SUCCESS, "User deleted successfully", key="delete-user")
        finally:
            self._settle()

    async def bulk_delete_users(self, user_ids: Iterable[str]) -> None:
        """Delete immediately, without an undo window."""
        ids = _unique_ids(user_ids)
        if ids:
            await self._context.lock.run(lambda: self._bulk_delete_users(ids))

    async def _bulk_delete_users(self, user_ids: tuple[str, ...]) -> None:
        previous_collection = self._cache.read_collection()
        previous_users = {user_id: self._cache.read(user_id) for user_id in user_ids}
        now = self._context.clock()
        entries = [self._log.append(PendingMutation.delete(uid, now=now)).id for uid in user_ids]

        for user_id in user_ids:
            self._cache.remove(user_id)
        count = len(user_ids)
        self._notify(
            NotificationLevel.LOADING,
            f"Deleting {count} user{_plural(count)}...",
            key="bulk-delete",
        )

        try:
            await self._service.bulk_delete_users(user_ids)
        except RemoteServiceError as exc:
            self._forget(entries)
            self._cache.write_collection(lambda _old: previous_collection)
            for user_id, previous in previous_users.items():
                self._cache.write(user_id, lambda _old, previous=previous: previous)
            log.warning("Bulk delete of %d user(s) rolled back: %s", count, exc)
            self._notify(NotificationLevel.ERROR, "Failed to delete users", key="bulk-delete")
            raise
        else:
            self._forget(entries)
            self._notify(
                NotificationLevel.SUCCESS,
                f"{count} user{_plural(count)} deleted successfully",
                key="bulk-delete",
            )
        finally:
            self._settle()

    # ------------------------------------------------------------------- undo

    async def bulk_delete_with_undo(self, user_ids: Iterable[str]) -> UndoOperation | None:
        """Hide users now and delete them remotely once the undo window expires.

        Returns ``None`` when none of the ids are in the cached collection.
        """
        ids = _unique_ids(user_ids)
        return await self._context.lock.run(lambda: self._stage_bulk_delete(ids))

    async def _stage_bulk_delete(self, user_ids: tuple[str, ...]) -> UndoOperation | None:
        wanted = set(user_ids)
        collection = self._cache.read_collection()
        if collection is None:
            collection = await self._load_users(force=False)
        doomed = tuple(user for user in collection if user.id in wanted)
        if not doomed:
            self._notify(NotificationLevel.ERROR, "No users to delete")
            return None

        now = self._context.clock()
        operation_id = f"bulk-delete-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"
        entries = [self._log.append(PendingMutation.delete(user.id, now=now)).id for user in doomed]
        for user in doomed:
            self._cache.remove(user.id)
        self._settle()

        undo = self._context.undo
        count = len(doomed)
        self._notify(
            NotificationLevel.INFO,
            f"{count} user{_plural(count)} deleted. Undo within {undo.window_seconds:g} seconds.",
            key=operation_id,
        )
        return undo.start(operation_id, doomed, self._commit_staged_delete, log_entry_ids=entries)

    async def _commit_staged_delete(self, operation: UndoOperation) -> None:
        await self._context.lock.run(lambda: self._delete_staged(operation))

    async def _delete_staged(self, operation: UndoOperation) -> None:
        user_ids = [user.id for user in operation.snapshot]
        count = len(user_ids)
        try:
            await self._service.bulk_delete_users(user_ids)
        except RemoteServiceError as exc:
            # Nobody awaits the expiry task; surface through notifications only.
            self._forget(operation.log_entry_ids)
            self._reinsert(operation.snapshot)
            self._cache.invalidate(COLLECTION_KEY)
            log.warning("Permanent delete for %s failed: %s", operation.id, exc)
            self._notify(
                NotificationLevel.ERROR,
                "Failed to permanently delete users",
                key=operation.id,
            )
        else:
            self._forget(operation.log_entry_ids)
            self._notify(
                NotificationLevel.SUCCESS,
                f"{count} user{_plural(count)} permanently deleted",
                key=operation.id,
            )
        finally:
            self._settle()

    async def undo(self, operation_id: str) -> RestoreResult:
        """Cancel a staged delete and bring its users back.

        The timer is cancelled immediately; the cache re-insert and the server
        re-query then run in order with other mutations.
        """
        operation = self._context.undo.cancel(operation_id)
        if operation is None:
            self._notify(NotificationLevel.INFO, "Nothing to undo", key=operation_id)
            return RestoreResult()
        self._forget(operation.log_entry_ids)
        return await self._context.lock.run(lambda: self._restore(operation.snapshot))

    async def _restore(self, snapshot: tuple[User, ...]) -> RestoreResult:
        self._reinsert(snapshot)
        self._notify(NotificationLevel.LOADING, "Restoring users...", key="restore-users")

        created: list[User] = []
        try:
            fresh = await self._service.list_users()
            existing = {user.content_key() for user in fresh}
            missing = [user for user in snapshot if user.content_key() not in existing]
            if missing:
                created = list(
                    await asyncio.gather(
                        *(self._service.create_user(user.to_draft()) for user in missing)
                    )
                )
        except RemoteServiceError as exc:
            self._cache.invalidate(COLLECTION_KEY)
            log.warning("Restore of %d user(s) failed: %s", len(snapshot), exc)
            self._notify(
                NotificationLevel.ERROR,
                "Failed to restore users. They may have been permanently deleted.",
                key="restore-users",
            )
            raise
        finally:
            self._settle()

        self._adopt_recreated(snapshot, created)
        self._cache.invalidate(COLLECTION_KEY)

        restored_keys = {user.content_key() for user in created}
        skipped = tuple(user for user in snapshot if user.content_key() not in restored_keys)
        if created:
            count = len(created)
            self._notify(
                NotificationLevel.SUCCESS,
                f"{count} user{_plural(count)} restored",
                key="restore-users",
            )
        else:
            self._notify(
                NotificationLevel.INFO,
                "Users already exist, no restoration needed",
                key="restore-users",
            )
        return RestoreResult(restored=tuple(created), skipped=skipped)

    # ------------------------------------------------------------- lifecycle

    async def replay_pending(self) -> ReplayResult:
        """Re-run mutations left in the durable log by a previous process."""
        return await self._context.lock.run(
            lambda: replay_pending_mutations(self._service, self._context)
        )

    def close(self) -> list[UndoOperation]:
        """Drop pending undo timers without committing them.

        Their delete entries stay in the durable log and are replayed on the
        next boot.
        """
        cancelled = self._context.undo.clear_all()
        if cancelled:
            log.info("Closed with %d staged delete(s) left for replay", len(cancelled))
        return cancelled

    # --------------------------------------------------------------- helpers

    def _reinsert(self, snapshot: Sequence[User]) -> None:
        collection = self._cache.read_collection()
        if collection is not None:
            present = {user.id for user in collection}
            additions = tuple(user for user in snapshot if user.id not in present)
            self._cache.write_collection(lambda old: (*(old or ()), *additions))
        for user in snapshot:
            self._cache.write(user.id, lambda _old, user=user: user)

    def _adopt_recreated(self, snapshot: Sequence[User], created: Sequence[User]) -> None:
        """Swap snapshot copies for their re-created server records (matched by content key)."""
        by_key = {user.content_key(): user for user in created}
        for original in snapshot:
            replacement = by_key.get(original.content_key())
            if replacement is None:
                continue
            self._cache.write_collection(
                lambda old, original=original, replacement=replacement: _swap_placeholder(
                    old, original.id, replacement
                )
                if old is not None
                else None
            )
            self._cache.write(original.id, lambda _old: None)
            self._cache.write(replacement.id, lambda _old, replacement=replacement: replacement)

    def _forget(self, mutation_ids: Iterable[str]) -> None:
        for mutation_id in mutation_ids:
            self._log.remove(mutation_id)

    def _settle(self) -> None:
        # The primary collection is already reconciled; only derived views go stale.
        self._cache.invalidate(AGGREGATES_KEY)

    def _notify(self, level: NotificationLevel, message: str, *, key: str | None = None) -> None:
        self._context.notifier.notify(Notification(level, message, key))
