"""Application configuration helpers."""

from __future__ import annotations

from .engine import EngineConfig, get_engine_config
from .env import optional_float_env, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .users_api import UsersApiConfig, get_users_api_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "EngineConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "UsersApiConfig",
    "configure_logging",
    "get_database_config",
    "get_engine_config",
    "get_storage_config",
    "get_users_api_config",
    "optional_float_env",
    "require_env_var",
    "require_env_vars",
]
