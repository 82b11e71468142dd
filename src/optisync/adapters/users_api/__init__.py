"""Public interface for the users service adapter."""

from __future__ import annotations

from .client import HttpUserService
from .schema import ErrorPayload, UserPayload, UserWritePayload
from .translator import parse_api_error, parse_user

__all__ = [
    "ErrorPayload",
    "HttpUserService",
    "UserPayload",
    "UserWritePayload",
    "parse_api_error",
    "parse_user",
]
