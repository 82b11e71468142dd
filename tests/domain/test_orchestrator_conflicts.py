from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from optisync.domain.conflicts import Resolution
from optisync.domain.errors import ConflictDetectedError, RemoteServiceError
from optisync.domain.model import User, UserPatch
from optisync.domain.ports import NotificationLevel

from tests.helpers.users import make_engine


def test_conflict_is_raised_before_any_cache_change(users: list[User]) -> None:
    orchestrator, service, notifier, _ = make_engine(users)
    cache = orchestrator.context.cache

    async def scenario() -> ConflictDetectedError:
        await orchestrator.load_users()
        before = cache.read_collection()
        service.put(replace(users[0], email="ada@elsewhere.org"))

        with pytest.raises(ConflictDetectedError) as excinfo:
            await orchestrator.update_user_checked("u1", UserPatch(name="Ada L."))

        assert cache.read_collection() == before
        return excinfo.value

    conflict = asyncio.run(scenario())

    assert conflict.report.differences == {"email": ("ada@example.com", "ada@elsewhere.org")}
    assert service.call_count("update_user") == 0
    assert len(orchestrator.context.log) == 0
    assert len(notifier.messages(NotificationLevel.WARNING)) == 1


def test_keep_server_discards_the_edit(users: list[User]) -> None:
    orchestrator, service, _, _ = make_engine(users)
    cache = orchestrator.context.cache
    server_copy = replace(users[0], role="Viewer")
    patch = UserPatch(name="Ada L.")

    async def scenario() -> User:
        await orchestrator.load_users()
        service.put(server_copy)
        with pytest.raises(ConflictDetectedError) as excinfo:
            await orchestrator.update_user_checked("u1", patch)
        return await orchestrator.resolve_conflict(
            excinfo.value.report, Resolution.KEEP_SERVER, patch
        )

    kept = asyncio.run(scenario())

    assert kept == server_copy
    assert cache.read("u1") == server_copy
    assert (cache.read_collection() or ())[0] == server_copy
    assert service.call_count("update_user") == 0


def test_overwrite_applies_the_pending_patch(users: list[User]) -> None:
    orchestrator, service, _, _ = make_engine(users)
    patch = UserPatch(name="Ada L.")

    async def scenario() -> User:
        await orchestrator.load_users()
        service.put(replace(users[0], role="Viewer"))
        with pytest.raises(ConflictDetectedError) as excinfo:
            await orchestrator.update_user_checked("u1", patch)
        return await orchestrator.resolve_conflict(
            excinfo.value.report, Resolution.OVERWRITE, patch
        )

    written = asyncio.run(scenario())

    assert written.name == "Ada L."
    assert written.role == "Viewer"
    assert service.call_count("update_user") == 1


def test_unreachable_server_does_not_block_the_edit(users: list[User]) -> None:
    orchestrator, service, _, _ = make_engine(users)

    async def scenario() -> User:
        await orchestrator.load_users()
        service.fail_next("get_user", RemoteServiceError("timeout"))
        return await orchestrator.update_user_checked("u2", UserPatch(active=False))

    updated = asyncio.run(scenario())

    assert updated.active is False


def test_uncached_user_skips_the_check(users: list[User]) -> None:
    orchestrator, service, _, _ = make_engine(users)

    updated = asyncio.run(orchestrator.update_user_checked("u3", UserPatch(bio="hi")))

    assert updated.bio == "hi"
    assert service.call_count("get_user") == 0
