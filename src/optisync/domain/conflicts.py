"""Detection of out-of-band modifications before an edit is submitted."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from optisync.domain.errors import RemoteServiceError
from optisync.domain.model import MUTABLE_FIELDS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from optisync.domain.model import User

log = getLogger(__name__)


class Resolution(StrEnum):
    """The two choices offered to the user; there is no automatic merge."""

    KEEP_SERVER = "keep_server"
    OVERWRITE = "overwrite"


def field_differences(client: User, server: User) -> dict[str, tuple[object, object]]:
    """Mutable fields whose values differ, as ``field -> (client, server)``."""
    differences: dict[str, tuple[object, object]] = {}
    for name in MUTABLE_FIELDS:
        client_value = getattr(client, name)
        server_value = getattr(server, name)
        if client_value != server_value:
            differences[name] = (client_value, server_value)
    return differences


@dataclass(frozen=True, slots=True)
class ConflictReport:
    client_version: User
    server_version: User
    differences: dict[str, tuple[object, object]] = field(default_factory=dict)

    @classmethod
    def between(cls, client: User, server: User) -> ConflictReport:
        return cls(client, server, field_differences(client, server))


@dataclass(frozen=True, slots=True)
class ConflictCheck:
    has_conflict: bool
    server_copy: User | None = None
    report: ConflictReport | None = None


NO_CONFLICT = ConflictCheck(has_conflict=False)


class ConflictDetector:
    """Compare a cached snapshot against the server's current copy.

    Any differing mutable field counts as a conflict, including fields the
    pending edit does not touch. A failed fetch reports no conflict so the
    user's edit is never blocked by an unreachable server.
    """

    async def check(
        self,
        local: User | None,
        fetch_server_copy: Callable[[], Awaitable[User]],
    ) -> ConflictCheck:
        if local is None:
            return NO_CONFLICT
        try:
            server = await fetch_server_copy()
        except RemoteServiceError as exc:
            log.warning("Conflict check for %s skipped, fetch failed: %s", local.id, exc)
            return NO_CONFLICT
        report = ConflictReport.between(local, server)
        if not report.differences:
            return NO_CONFLICT
        log.info("Conflict on %s: %s", local.id, ", ".join(sorted(report.differences)))
        return ConflictCheck(has_conflict=True, server_copy=server, report=report)
