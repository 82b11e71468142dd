"""Translate users service payloads to and from domain values."""

from __future__ import annotations

from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from optisync.domain.errors import FieldError, RemoteServiceError
from optisync.domain.model import User

from .schema import ErrorPayload, UserPayload, UserWritePayload

if TYPE_CHECKING:
    import httpx

    from optisync.domain.model import UserDraft, UserPatch

log = getLogger(__name__)

_FALLBACK_MESSAGE = "An unexpected error occurred"


def parse_user(payload: UserPayload) -> User:
    created_at = payload.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return User(
        id=payload.id,
        created_at=created_at,
        name=payload.name,
        email=payload.email,
        phone_number=payload.phone_number,
        avatar=payload.avatar,
        active=payload.active,
        role=payload.role,
        bio=payload.bio,
    )


def draft_to_payload(draft: UserDraft) -> dict[str, object]:
    return UserWritePayload.model_validate(draft.attributes()).to_json()


def patch_to_payload(patch: UserPatch) -> dict[str, object]:
    return UserWritePayload.model_validate(patch.changes()).to_json()


def parse_api_error(response: httpx.Response) -> RemoteServiceError:
    """Build a ``RemoteServiceError`` from an error response body.

    Field names in the ``errors`` map are lower-cased; a body that is not JSON
    falls back to the HTTP reason phrase.
    """
    try:
        body = ErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        log.debug("Non-JSON error body (HTTP %d)", response.status_code)
        message = response.reason_phrase or _FALLBACK_MESSAGE
        return RemoteServiceError(message, status=response.status_code)

    field_errors = [
        FieldError(field=name.lower(), message=message)
        for name, messages in body.errors.items()
        for message in messages
    ]
    message = body.message or body.error or response.reason_phrase or _FALLBACK_MESSAGE
    return RemoteServiceError(message, status=response.status_code, field_errors=field_errors)
