"""Configuration type definitions.

Defines the schema for configuration keys including types, defaults and
validation rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConfigType(Enum):
    """Supported configuration value types."""

    INT = "int"
    BOOL = "bool"
    STRING = "string"


@dataclass
class ConfigKey:
    """
    Definition of a configuration key with validation rules.

    Attributes:
        key: The dot-notation config key (e.g., "grouping.max_group_size")
        config_type: The expected type of the value
        default: Value used when neither the environment nor the database sets one.
            None means the key is optional and unset by default.
        description: Human-readable description
        min_value: Minimum allowed value (for numeric types)
        max_value: Maximum allowed value (for numeric types)
    """

    key: str
    config_type: ConfigType
    default: Any = None
    description: str = ""
    min_value: int | None = None
    max_value: int | None = None

    def validate(self, value: Any) -> str | None:
        """
        Validate a value against this key's rules.

        Args:
            value: The value to validate

        Returns:
            None if valid, error message string if invalid
        """
        if value is None:
            return None

        if self.config_type == ConfigType.INT:
            if isinstance(value, bool) or not isinstance(value, int):
                return f"Value {value!r} is not an integer"
            if self.min_value is not None and value < self.min_value:
                return f"Value {value} below minimum {self.min_value}"
            if self.max_value is not None and value > self.max_value:
                return f"Value {value} above maximum {self.max_value}"

        return None
