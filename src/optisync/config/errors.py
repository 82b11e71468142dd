"""Errors raised while reading configuration."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Base class; a configured value cannot be used as given."""


class MissingConfigurationError(ConfigurationError):
    """A required environment variable is unset or blank."""


class InvalidConfigurationError(ConfigurationError, ValueError):
    """An environment variable is set but does not parse (e.g. a non-positive timeout)."""
