"""The managed user record and its create/update payloads."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, fields, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

TEMPORARY_ID_PREFIX: Final[str] = "temp-"

# Identity (``id``) and ``created_at`` are never compared or merged.
MUTABLE_FIELDS: Final[tuple[str, ...]] = (
    "name",
    "email",
    "phone_number",
    "avatar",
    "active",
    "role",
    "bio",
)


def new_temporary_id(*, now: datetime | None = None) -> str:
    stamp = int((now or datetime.now(UTC)).timestamp() * 1000)
    return f"{TEMPORARY_ID_PREFIX}{stamp}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True, kw_only=True)
class UserDraft:
    """Attributes for a user that does not exist server-side yet."""

    name: str
    email: str
    phone_number: str
    role: str
    active: bool = True
    avatar: str | None = None
    bio: str = ""

    def attributes(self) -> dict[str, object]:
        return asdict(self)

    def to_user(self, *, id: str, created_at: datetime) -> User:  # noqa: A002
        return User(id=id, created_at=created_at, **self.attributes())  # pyright: ignore[reportArgumentType]


@dataclass(frozen=True, slots=True, kw_only=True)
class UserPatch:
    """Partial update; ``None`` means "leave unchanged"."""

    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    avatar: str | None = None
    active: bool | None = None
    role: str | None = None
    bio: str | None = None

    @classmethod
    def from_changes(cls, changes: Mapping[str, object]) -> UserPatch:
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown user fields: {', '.join(sorted(unknown))}")
        return cls(**changes)  # pyright: ignore[reportArgumentType]

    def changes(self) -> dict[str, object]:
        return {f.name: value for f in fields(self) if (value := getattr(self, f.name)) is not None}

    def is_empty(self) -> bool:
        return not self.changes()


@dataclass(frozen=True, slots=True, kw_only=True)
class User:
    id: str
    created_at: datetime
    name: str
    email: str
    phone_number: str
    role: str
    active: bool = True
    avatar: str | None = None
    bio: str = ""

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMPORARY_ID_PREFIX)

    def attributes(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in MUTABLE_FIELDS}

    def content_key(self) -> str:
        """Stable key for "the same person" independent of server-assigned ids."""
        return self.email.strip().casefold()

    def merged(self, patch: UserPatch) -> User:
        return replace(self, **patch.changes())  # pyright: ignore[reportArgumentType]

    def to_draft(self) -> UserDraft:
        return UserDraft(**self.attributes())  # pyright: ignore[reportArgumentType]
