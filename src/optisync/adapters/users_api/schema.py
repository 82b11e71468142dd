"""Pydantic models describing the users service payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class UsersApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UserPayload(UsersApiBaseModel):
    id: str
    created_at: datetime = Field(alias="createdAt")
    name: str
    email: str
    phone_number: str = Field(default="", alias="phoneNumber")
    avatar: str | None = None
    active: bool = True
    role: str
    bio: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        # Some backends hand out numeric ids.
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("bio", mode="before")
    @classmethod
    def _null_bio(cls, value: object) -> object:
        return "" if value is None else value

    _normalize_avatar = field_validator("avatar", mode="before")(_blank_to_none)


class UserListPayload(UsersApiBaseModel):
    """Accepts both a bare JSON array and a ``{"data": [...]}`` envelope."""

    data: list[UserPayload]

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, value: object) -> object:
        if isinstance(value, list):
            return {"data": value}
        return value


class UserWritePayload(UsersApiBaseModel):
    """Body for ``POST /users`` and ``PUT /users/{id}``; unset fields are omitted."""

    name: str | None = None
    email: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    avatar: str | None = None
    active: bool | None = None
    role: str | None = None
    bio: str | None = None

    def to_json(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BulkDeletePayload(UsersApiBaseModel):
    ids: list[str]


class ErrorPayload(UsersApiBaseModel):
    message: str | None = None
    error: str | None = None
    errors: dict[str, list[str]] = Field(default_factory=dict[str, list[str]])

    @field_validator("errors", mode="before")
    @classmethod
    def _listify_messages(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return {}
        normalized: dict[str, list[str]] = {}
        for key, messages in cast(Mapping[object, object], value).items():
            if isinstance(messages, str):
                normalized[str(key)] = [messages]
            elif isinstance(messages, list):
                normalized[str(key)] = [str(item) for item in cast(list[object], messages)]
        return normalized
