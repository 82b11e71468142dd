"""Port for the remote users service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from optisync.domain.model import User, UserDraft, UserPatch


@runtime_checkable
class UserService(Protocol):
    """Opaque CRUD collaborator.

    Every method may raise ``RemoteServiceError``; ``get_user`` and ``update_user``
    raise ``EntityNotFoundError`` when the target does not exist.
    """

    async def list_users(self) -> Sequence[User]: ...

    async def get_user(self, user_id: str) -> User: ...

    async def create_user(self, draft: UserDraft) -> User: ...

    async def update_user(self, user_id: str, patch: UserPatch) -> User: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def bulk_delete_users(self, user_ids: Sequence[str]) -> None: ...
