from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable  # noqa: TC003
from typing import Any

import httpx
import pytest

from optisync.adapters.http_resilience import ResilienceConfig, ResilientClient
from optisync.adapters.users_api import HttpUserService, parse_api_error
from optisync.config import UsersApiConfig
from optisync.domain.errors import EntityNotFoundError, RemoteServiceError
from optisync.domain.model import UserPatch

from tests.helpers.users import make_draft

BASE_URL = "https://api.example.test"

USER_JSON: dict[str, object] = {
    "id": "42",
    "createdAt": "2024-05-01T10:00:00Z",
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phoneNumber": "+44 20 7946 0000",
    "avatar": "",
    "active": True,
    "role": "Admin",
    "bio": None,
}


def _make_service(
    handler: Callable[[httpx.Request], httpx.Response],
) -> HttpUserService:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL,
            transport=httpx.MockTransport(async_handler),
        )
        return client

    config = UsersApiConfig(resilience=ResilienceConfig(name="users-test", base_url=BASE_URL))
    return HttpUserService(config, client_factory=factory)


def _run(service: HttpUserService, call: Callable[[HttpUserService], Awaitable[Any]]) -> Any:
    async def scenario() -> Any:
        async with service:
            return await call(service)

    return asyncio.run(scenario())


def test_list_users_accepts_bare_array_and_translates_fields() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[USER_JSON])

    users = _run(_make_service(handler), lambda s: s.list_users())

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/users"
    (user,) = users
    assert user.id == "42"
    assert user.phone_number == "+44 20 7946 0000"
    assert user.avatar is None
    assert user.bio == ""
    assert user.created_at.tzinfo is not None


def test_list_users_accepts_data_envelope() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [USER_JSON, {**USER_JSON, "id": 7}]})

    users = _run(_make_service(handler), lambda s: s.list_users())

    assert [user.id for user in users] == ["42", "7"]


def test_create_posts_camel_case_payload() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json=USER_JSON)

    created = _run(_make_service(handler), lambda s: s.create_user(make_draft("ada@example.com")))

    assert created.id == "42"
    assert bodies[0]["phoneNumber"] == "+1 555 0199"
    assert "phone_number" not in bodies[0]
    assert "avatar" not in bodies[0]
    assert bodies[0]["active"] is True


def test_update_puts_only_changed_fields() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={**USER_JSON, "name": "Countess"})

    updated = _run(
        _make_service(handler), lambda s: s.update_user("42", UserPatch(name="Countess"))
    )

    assert requests[0].method == "PUT"
    assert requests[0].url.path == "/users/42"
    assert json.loads(requests[0].content) == {"name": "Countess"}
    assert updated.name == "Countess"


def test_bulk_delete_posts_ids() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    _run(_make_service(handler), lambda s: s.bulk_delete_users(["1", "2"]))

    assert requests[0].url.path == "/users/bulk-delete"
    assert json.loads(requests[0].content) == {"ids": ["1", "2"]}


def test_not_found_becomes_entity_not_found() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "User not found"})

    with pytest.raises(EntityNotFoundError) as excinfo:
        _run(_make_service(handler), lambda s: s.delete_user("42"))

    assert excinfo.value.entity_id == "42"
    assert excinfo.value.status == 404


def test_validation_errors_carry_field_messages() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            422,
            json={
                "message": "Validation failed",
                "errors": {"Email": "Email already exists", "name": ["too short", "invalid"]},
            },
        )

    with pytest.raises(RemoteServiceError) as excinfo:
        _run(_make_service(handler), lambda s: s.create_user(make_draft()))

    error = excinfo.value
    assert error.message == "Validation failed"
    assert error.status == 422
    assert [(f.field, f.message) for f in error.field_errors] == [
        ("email", "Email already exists"),
        ("name", "too short"),
        ("name", "invalid"),
    ]


def test_transport_errors_become_remote_service_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteServiceError, match="Network error"):
        _run(_make_service(handler), lambda s: s.get_user("42"))


def test_unexpected_payload_is_a_remote_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(RemoteServiceError, match="Unexpected"):
        _run(_make_service(handler), lambda s: s.get_user("42"))


def test_parse_api_error_falls_back_for_non_json_bodies() -> None:
    response = httpx.Response(502, text="<html>bad gateway</html>")

    error = parse_api_error(response)

    assert error.message == "Bad Gateway"
    assert error.status == 502
    assert error.field_errors == ()


def test_parse_api_error_uses_error_key() -> None:
    error = parse_api_error(httpx.Response(500, json={"error": "database offline"}))

    assert error.message == "database offline"
