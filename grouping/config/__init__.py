"""
Configuration for the grouping engine.

Usage:
    from grouping.config import ConfigLoader

    config = ConfigLoader.get_instance()
    max_size = config.get_int("grouping.max_group_size")
    grouping_config = config.get_grouping_config(num_groups=4)
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    ConfigValidationError,
    DatabaseUnavailableError,
    UnknownKeyError,
)
from .loader import ConfigLoader
from .schema import CONFIG_SCHEMA, get_defaults, get_schema_key, validate_key
from .types import ConfigKey, ConfigType

__all__ = [
    # Main loader
    "ConfigLoader",
    # Error classes
    "ConfigError",
    "ConfigValidationError",
    "DatabaseUnavailableError",
    "UnknownKeyError",
    # Schema
    "CONFIG_SCHEMA",
    "ConfigKey",
    "ConfigType",
    "get_defaults",
    "get_schema_key",
    "validate_key",
]
