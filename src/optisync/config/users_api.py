"""Remote users service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_float_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

USERS_API_TIMEOUT_SECONDS = 10.0
USERS_PATH = "/users"
BULK_DELETE_PATH = "/users/bulk-delete"


@dataclass(frozen=True, slots=True)
class UsersApiConfig:
    """Holds the users service endpoint layout and client resilience settings."""

    resilience: ResilienceConfig
    users_path: str = USERS_PATH
    bulk_delete_path: str = BULK_DELETE_PATH


def get_users_api_config(*, resilience: ResilienceConfig | None = None) -> UsersApiConfig:
    values = require_env_vars(("OPTISYNC_API_BASE_URL",))
    timeout = optional_float_env("OPTISYNC_API_TIMEOUT", USERS_API_TIMEOUT_SECONDS)
    return UsersApiConfig(
        resilience=resilience
        or ResilienceConfig(
            name="users-api",
            base_url=values["OPTISYNC_API_BASE_URL"].rstrip("/"),
            timeout_seconds=timeout,
            retry=RetryPolicy(total=1),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={"Accept": "application/json"},
        ),
    )
