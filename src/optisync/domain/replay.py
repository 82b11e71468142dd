"""Boot-time replay of mutations that were pending when the process stopped."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from optisync.domain.cache import COLLECTION_KEY
from optisync.domain.errors import EntityNotFoundError, RemoteServiceError
from optisync.domain.model import MutationType, PendingMutation, UserDraft, UserPatch
from optisync.domain.ports import Notification, NotificationLevel

if TYPE_CHECKING:
    from optisync.domain.orchestrator import EngineContext
    from optisync.domain.ports import UserService

log = getLogger(__name__)

_NOUNS = {
    MutationType.CREATE: "creation",
    MutationType.UPDATE: "update",
    MutationType.DELETE: "deletion",
}


@dataclass(frozen=True, slots=True)
class ReplayFailure:
    mutation: PendingMutation
    reason: str


@dataclass(slots=True)
class ReplayResult:
    completed: list[PendingMutation] = field(default_factory=list[PendingMutation])
    failed: list[ReplayFailure] = field(default_factory=list[ReplayFailure])

    @property
    def attempted(self) -> int:
        return len(self.completed) + len(self.failed)


async def replay_pending_mutations(service: UserService, context: EngineContext) -> ReplayResult:
    """Execute every live log entry once; failures are discarded, never retried."""

    result = ReplayResult()
    pending = context.log.list()
    if not pending:
        return result

    log.info("Replaying %d pending mutation(s)", len(pending))
    for mutation in pending:
        try:
            await _execute(service, mutation)
        except (RemoteServiceError, ValueError) as exc:
            context.log.remove(mutation.id)
            result.failed.append(ReplayFailure(mutation=mutation, reason=str(exc)))
            log.warning("Discarding pending %s %s: %s", mutation.type, mutation.id, exc)
            context.notifier.notify(
                Notification(
                    NotificationLevel.WARNING,
                    f"Failed to complete pending {mutation.type} operation",
                )
            )
            continue

        context.log.remove(mutation.id)
        result.completed.append(mutation)
        context.cache.invalidate(COLLECTION_KEY)
        context.notifier.notify(
            Notification(
                NotificationLevel.SUCCESS,
                f"Pending user {_NOUNS[mutation.type]} completed",
            )
        )

    return result


async def _execute(service: UserService, mutation: PendingMutation) -> None:
    match mutation.type:
        case MutationType.CREATE:
            try:
                draft = UserDraft(**mutation.payload)  # pyright: ignore[reportArgumentType]
            except TypeError as exc:
                raise ValueError(f"invalid create payload: {exc}") from exc
            await service.create_user(draft)
        case MutationType.UPDATE:
            target = _require_target(mutation)
            try:
                patch = UserPatch.from_changes(mutation.payload)
            except TypeError as exc:
                raise ValueError(f"invalid update payload: {exc}") from exc
            await service.update_user(target, patch)
        case MutationType.DELETE:
            target = _require_target(mutation)
            try:
                await service.delete_user(target)
            except EntityNotFoundError:
                log.info("Pending deletion of %s already applied server-side", target)


def _require_target(mutation: PendingMutation) -> str:
    if mutation.target_id is None:
        raise ValueError(f"{mutation.type} mutation has no target")
    return mutation.target_id
