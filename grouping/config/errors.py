"""Configuration error classes."""

from __future__ import annotations


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when a config value fails schema validation."""

    pass


class DatabaseUnavailableError(ConfigError):
    """Raised when the configuration database cannot be reached."""

    pass


class UnknownKeyError(ConfigError):
    """Raised when a key that is not in the schema is requested."""

    pass
