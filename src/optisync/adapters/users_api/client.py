"""HTTP client for the remote users service."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, TypeVar

import httpx
from pydantic import ValidationError

from optisync.adapters.http_resilience import ResilientClient
from optisync.config import UsersApiConfig, get_users_api_config
from optisync.domain.errors import EntityNotFoundError, RemoteServiceError
from optisync.domain.ports import UserService

from .schema import BulkDeletePayload, UserListPayload, UserPayload
from .translator import draft_to_payload, parse_api_error, parse_user, patch_to_payload

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from optisync.config import ResilienceConfig
    from optisync.domain.model import User, UserDraft, UserPatch

log = getLogger(__name__)

M = TypeVar("M", UserPayload, UserListPayload)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class HttpUserService:
    """``UserService`` backed by a JSON REST API.

    404 responses on single-record endpoints become ``EntityNotFoundError``;
    every other failure, transport errors included, becomes ``RemoteServiceError``.
    """

    def __init__(
        self,
        config: UsersApiConfig | None = None,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.config = config or get_users_api_config()
        self._client_factory = client_factory
        self._client: ResilientClient | None = None

    @property
    def client(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self.config.resilience)
        return self._client

    async def __aenter__(self) -> HttpUserService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_users(self) -> list[User]:
        response = await self._request("GET", self.config.users_path)
        payload = self._validate(UserListPayload, response)
        return [parse_user(item) for item in payload.data]

    async def get_user(self, user_id: str) -> User:
        response = await self._request("GET", self._user_path(user_id), entity_id=user_id)
        return parse_user(self._validate(UserPayload, response))

    async def create_user(self, draft: UserDraft) -> User:
        response = await self._request(
            "POST", self.config.users_path, json=draft_to_payload(draft)
        )
        user = parse_user(self._validate(UserPayload, response))
        log.info("Created user %s (%s)", user.id, user.email)
        return user

    async def update_user(self, user_id: str, patch: UserPatch) -> User:
        response = await self._request(
            "PUT", self._user_path(user_id), json=patch_to_payload(patch), entity_id=user_id
        )
        return parse_user(self._validate(UserPayload, response))

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", self._user_path(user_id), entity_id=user_id)

    async def bulk_delete_users(self, user_ids: Sequence[str]) -> None:
        body = BulkDeletePayload(ids=list(user_ids)).model_dump()
        await self._request("POST", self.config.bulk_delete_path, json=body)
        log.info("Bulk-deleted %d user(s)", len(user_ids))

    def _user_path(self, user_id: str) -> str:
        return f"{self.config.users_path}/{user_id}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: object | None = None,
        entity_id: str | None = None,
    ) -> httpx.Response:
        try:
            if json is None:
                response = await self.client.request(method, path)
            else:
                response = await self.client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            log.warning("%s %s failed: %s", method, path, exc)
            raise RemoteServiceError(f"Network error: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND and entity_id is not None:
            error = parse_api_error(response)
            raise EntityNotFoundError(entity_id, error.message)
        if response.is_error:
            error = parse_api_error(response)
            log.warning("%s %s returned %d: %s", method, path, response.status_code, error.message)
            raise error
        return response

    @staticmethod
    def _validate(model: type[M], response: httpx.Response) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RemoteServiceError(
                f"Unexpected users service response: {exc}", status=response.status_code
            ) from exc


if TYPE_CHECKING:
    _service_check: UserService = HttpUserService()
