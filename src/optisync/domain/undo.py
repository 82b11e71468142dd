"""Time-boxed, cancellable undo for destructive operations.

Each operation is a small state machine::

    PENDING --timer fires--> COMMITTED
    PENDING --cancel------> CANCELLED

Both end states are terminal. The timer is an ``asyncio.Task`` stored on the
operation itself, so cancelling an operation is cancelling its task.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from optisync.domain.model import utcnow

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from datetime import datetime

    from optisync.domain.model import Clock, User

    ExpiryCallback = Callable[["UndoOperation"], Awaitable[None]]

log = getLogger(__name__)

DEFAULT_UNDO_WINDOW_SECONDS: Final[float] = 5.0


class UndoState(StrEnum):
    PENDING = "pending"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass(eq=False, slots=True, kw_only=True)
class UndoOperation:
    id: str
    snapshot: tuple[User, ...]
    expires_at: datetime
    on_expire: ExpiryCallback = field(repr=False)
    log_entry_ids: tuple[str, ...] = ()
    state: UndoState = UndoState.PENDING
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def is_pending(self) -> bool:
        return self.state is UndoState.PENDING


class UndoRegistry:
    def __init__(
        self,
        *,
        window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self._window_seconds = window_seconds
        self._clock = clock
        self._operations: dict[str, UndoOperation] = {}

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def start(
        self,
        operation_id: str,
        snapshot: Iterable[User],
        on_expire: ExpiryCallback,
        *,
        log_entry_ids: Iterable[str] = (),
    ) -> UndoOperation:
        """Register a reversible operation and arm its expiry timer.

        Must be called from a running event loop. Re-using a live id cancels the
        previous timer first, so at most one commit can happen per id.
        """
        self.cancel(operation_id)
        operation = UndoOperation(
            id=operation_id,
            snapshot=tuple(snapshot),
            expires_at=self._clock() + timedelta(seconds=self._window_seconds),
            on_expire=on_expire,
            log_entry_ids=tuple(log_entry_ids),
        )
        operation.task = asyncio.get_running_loop().create_task(
            self._expire_after_window(operation), name=f"undo-expiry:{operation_id}"
        )
        self._operations[operation_id] = operation
        log.debug("Undo window opened for %s (%d item(s))", operation_id, len(operation.snapshot))
        return operation

    def cancel(self, operation_id: str) -> UndoOperation | None:
        """Cancel a pending operation without committing it.

        Returns the cancelled operation, or ``None`` when nothing was pending.
        """
        operation = self._operations.pop(operation_id, None)
        if operation is None:
            return None
        operation.state = UndoState.CANCELLED
        if operation.task is not None:
            operation.task.cancel()
        log.debug("Undo operation %s cancelled", operation_id)
        return operation

    def clear_all(self) -> list[UndoOperation]:
        return [op for op_id in list(self._operations) if (op := self.cancel(op_id)) is not None]

    def get(self, operation_id: str) -> UndoOperation | None:
        return self._operations.get(operation_id)

    def pending(self) -> tuple[UndoOperation, ...]:
        return tuple(self._operations.values())

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    async def _expire_after_window(self, operation: UndoOperation) -> None:
        await asyncio.sleep(self._window_seconds)
        if self._operations.get(operation.id) is not operation:
            return
        # Leave the registry before committing so a late cancel is a no-op.
        del self._operations[operation.id]
        operation.state = UndoState.COMMITTED
        log.debug("Undo window for %s expired; committing", operation.id)
        try:
            await operation.on_expire(operation)
        except Exception:
            log.exception("Commit of undo operation %s failed", operation.id)
