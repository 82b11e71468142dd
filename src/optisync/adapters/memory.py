"""In-process adapters for demos and tests."""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from optisync.domain.errors import EntityNotFoundError, RemoteServiceError, StorageUnavailableError
from optisync.domain.model import User

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from optisync.domain.model import UserDraft, UserPatch
    from optisync.domain.ports import DurableSlot, UserService

log = getLogger(__name__)

_SEED_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)

_SEED_ROWS: tuple[tuple[str, str, str, str, bool, str], ...] = (
    (
        "John Doe",
        "john.doe@example.com",
        "+1 (555) 010-0001",
        "Admin",
        True,
        "Senior administrator with full system access",
    ),
    (
        "Jane Smith",
        "jane.smith@example.com",
        "+1 (555) 010-0002",
        "Manager",
        True,
        "Team lead managing development projects",
    ),
    ("Bob Johnson", "bob.johnson@example.com", "+1 (555) 010-0003", "Developer", True, ""),
    ("Alice Brown", "alice.brown@example.com", "+1 (555) 010-0004", "Editor", True, ""),
    ("Carlos Diaz", "carlos.diaz@example.com", "+1 (555) 010-0005", "Viewer", False, ""),
    ("Mei Chen", "mei.chen@example.com", "+1 (555) 010-0006", "Developer", True, "Backend"),
)


def seed_users() -> list[User]:
    """Deterministic demo users."""
    return [
        User(
            id=f"user-{index}",
            created_at=_SEED_EPOCH + timedelta(days=index),
            name=name,
            email=email,
            phone_number=phone,
            role=role,
            active=active,
            bio=bio,
        )
        for index, (name, email, phone, role, active, bio) in enumerate(_SEED_ROWS, start=1)
    ]


class InMemoryUserService:
    """``UserService`` over a dict, with optional latency and scripted failures.

    ``fail_next("update_user")`` makes the next call of that operation raise;
    ``calls`` records every invocation as ``(operation, argument)``.
    """

    def __init__(
        self,
        users: Iterable[User] | None = None,
        *,
        latency: float = 0.0,
    ) -> None:
        self._users: dict[str, User] = {
            user.id: user for user in (seed_users() if users is None else users)
        }
        self.latency = latency
        self.calls: list[tuple[str, object]] = []
        self._failures: dict[str, list[RemoteServiceError]] = {}

    def fail_next(
        self,
        operation: str,
        error: RemoteServiceError | None = None,
        *,
        times: int = 1,
    ) -> None:
        failure = error or RemoteServiceError(f"Injected failure in {operation}", status=500)
        self._failures.setdefault(operation, []).extend([failure] * times)

    def call_count(self, operation: str) -> int:
        return Counter(name for name, _ in self.calls)[operation]

    def snapshot(self) -> list[User]:
        return list(self._users.values())

    def put(self, user: User) -> None:
        """Change server-side state directly, as another client would."""
        self._users[user.id] = user

    def discard(self, user_id: str) -> None:
        self._users.pop(user_id, None)

    async def list_users(self) -> list[User]:
        await self._enter("list_users", None)
        return list(self._users.values())

    async def get_user(self, user_id: str) -> User:
        await self._enter("get_user", user_id)
        return self._require(user_id)

    async def create_user(self, draft: UserDraft) -> User:
        await self._enter("create_user", draft)
        email = draft.email.strip().casefold()
        if any(user.content_key() == email for user in self._users.values()):
            raise RemoteServiceError(f"Email {draft.email} already exists", status=409)
        user = draft.to_user(id=str(uuid.uuid4()), created_at=datetime.now(UTC))
        self._users[user.id] = user
        return user

    async def update_user(self, user_id: str, patch: UserPatch) -> User:
        await self._enter("update_user", user_id)
        user = self._require(user_id).merged(patch)
        self._users[user_id] = user
        return user

    async def delete_user(self, user_id: str) -> None:
        await self._enter("delete_user", user_id)
        self._require(user_id)
        del self._users[user_id]

    async def bulk_delete_users(self, user_ids: Sequence[str]) -> None:
        await self._enter("bulk_delete_users", tuple(user_ids))
        for user_id in user_ids:
            self._users.pop(user_id, None)

    async def _enter(self, operation: str, argument: object) -> None:
        self.calls.append((operation, argument))
        if self.latency:
            await asyncio.sleep(self.latency)
        queued = self._failures.get(operation)
        if queued:
            error = queued.pop(0)
            log.debug("Injecting failure into %s: %s", operation, error)
            raise error

    def _require(self, user_id: str) -> User:
        try:
            return self._users[user_id]
        except KeyError:
            raise EntityNotFoundError(user_id) from None


class InMemoryDurableSlot:
    """``DurableSlot`` kept in process memory; ``available=False`` simulates an outage."""

    def __init__(self, value: str | None = None, *, available: bool = True) -> None:
        self.value = value
        self.available = available
        self.writes = 0

    def read(self) -> str | None:
        self._check()
        return self.value

    def write(self, value: str) -> None:
        self._check()
        self.value = value
        self.writes += 1

    def clear(self) -> None:
        self._check()
        self.value = None

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailableError("In-memory slot is unavailable")


if TYPE_CHECKING:
    _service_check: UserService = InMemoryUserService()
    _slot_check: DurableSlot = InMemoryDurableSlot()
