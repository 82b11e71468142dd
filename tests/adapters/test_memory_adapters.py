from __future__ import annotations

import asyncio

import pytest

from optisync.adapters.memory import InMemoryDurableSlot, InMemoryUserService, seed_users
from optisync.domain.errors import EntityNotFoundError, RemoteServiceError, StorageUnavailableError
from optisync.domain.ports import UserService

from tests.helpers.users import make_draft


def test_seed_users_are_deterministic() -> None:
    first = seed_users()

    assert first == seed_users()
    assert len({user.email for user in first}) == len(first)
    assert isinstance(InMemoryUserService(), UserService)


def test_create_rejects_duplicate_email() -> None:
    service = InMemoryUserService()

    with pytest.raises(RemoteServiceError) as excinfo:
        asyncio.run(service.create_user(make_draft("JOHN.DOE@example.com")))

    assert excinfo.value.status == 409


def test_scripted_failures_fire_the_requested_number_of_times() -> None:
    service = InMemoryUserService([])
    service.fail_next("list_users", times=2)

    for _ in range(2):
        with pytest.raises(RemoteServiceError):
            asyncio.run(service.list_users())

    assert asyncio.run(service.list_users()) == []
    assert service.call_count("list_users") == 3


def test_missing_user_raises_not_found() -> None:
    service = InMemoryUserService([])

    with pytest.raises(EntityNotFoundError):
        asyncio.run(service.get_user("ghost"))


def test_unavailable_slot_raises_storage_error() -> None:
    slot = InMemoryDurableSlot(available=False)

    with pytest.raises(StorageUnavailableError):
        slot.read()
