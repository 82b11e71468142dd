from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING

from optisync.domain.conflicts import ConflictDetector, field_differences
from optisync.domain.errors import RemoteServiceError
from optisync.domain.model import User

from tests.helpers.users import BASE_TIME, make_user

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


def _fetcher(result: User | Exception) -> tuple[Callable[[], Awaitable[User]], list[int]]:
    calls: list[int] = []

    async def fetch() -> User:
        calls.append(1)
        if isinstance(result, Exception):
            raise result
        return result

    return fetch, calls


def test_no_local_copy_means_no_conflict_and_no_fetch() -> None:
    fetch, calls = _fetcher(make_user("u1"))

    check = asyncio.run(ConflictDetector().check(None, fetch))

    assert not check.has_conflict
    assert calls == []


def test_identical_copies_do_not_conflict() -> None:
    local = make_user("u1")
    fetch, _ = _fetcher(replace(local))

    check = asyncio.run(ConflictDetector().check(local, fetch))

    assert not check.has_conflict
    assert check.report is None


def test_changed_email_is_reported_with_both_values() -> None:
    local = make_user("u1", email="a@x")
    server = replace(local, email="b@x")
    fetch, _ = _fetcher(server)

    check = asyncio.run(ConflictDetector().check(local, fetch))

    assert check.has_conflict
    assert check.server_copy == server
    assert check.report is not None
    assert check.report.differences == {"email": ("a@x", "b@x")}


def test_identity_and_creation_time_are_not_compared() -> None:
    local = make_user("u1")
    server = replace(local, created_at=BASE_TIME)

    assert field_differences(local, server) == {}


def test_fetch_failure_fails_open() -> None:
    fetch, calls = _fetcher(RemoteServiceError("offline"))

    check = asyncio.run(ConflictDetector().check(make_user("u1"), fetch))

    assert not check.has_conflict
    assert calls == [1]
