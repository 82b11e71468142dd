"""Aggregate views derived from the cached user collection."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

    from optisync.domain.model import User

USER_STATS_AGGREGATE: Final[str] = "user-stats"


@dataclass(frozen=True, slots=True)
class UserStats:
    total: int = 0
    active: int = 0
    by_role: dict[str, int] = field(default_factory=dict[str, int])

    @property
    def inactive(self) -> int:
        return self.total - self.active


def summarize_users(users: Iterable[User]) -> UserStats:
    # Optimistic placeholders are not real records yet.
    confirmed = [user for user in users if not user.is_temporary]
    roles = Counter(user.role for user in confirmed)
    return UserStats(
        total=len(confirmed),
        active=sum(1 for user in confirmed if user.active),
        by_role=dict(sorted(roles.items())),
    )
