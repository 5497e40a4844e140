"""Configuration schema registry.

Defines all valid grouping configuration keys with their types, defaults and
validation rules. Unknown keys are rejected by the loader.
"""

from __future__ import annotations

from typing import Any

from grouping.models import DEFAULT_MAX_GRADE_SPREAD, DEFAULT_MAX_GROUP_SIZE

from .types import ConfigKey, ConfigType

# =============================================================================
# CONFIGURATION SCHEMA REGISTRY
# =============================================================================

CONFIG_SCHEMA: dict[str, ConfigKey] = {
    # =========================================================================
    # GROUP CONSTRAINTS
    # =========================================================================
    "grouping.max_group_size": ConfigKey(
        key="grouping.max_group_size",
        config_type=ConfigType.INT,
        default=DEFAULT_MAX_GROUP_SIZE,
        description="Maximum campers per group before a hard size violation",
        min_value=1,
        max_value=200,
    ),
    "grouping.max_grade_spread": ConfigKey(
        key="grouping.max_grade_spread",
        config_type=ConfigType.INT,
        default=DEFAULT_MAX_GRADE_SPREAD,
        description="Maximum difference between highest and lowest grade in a group",
        min_value=0,
        max_value=13,
    ),
    "grouping.num_groups": ConfigKey(
        key="grouping.num_groups",
        config_type=ConfigType.INT,
        default=None,
        description="Fixed number of groups; unset derives it from camper count / max size",
        min_value=1,
        max_value=100,
    ),
    # =========================================================================
    # STANDARDIZATION
    # =========================================================================
    "grouping.school_year_cutoff_month": ConfigKey(
        key="grouping.school_year_cutoff_month",
        config_type=ConfigType.INT,
        default=9,
        description="Month (1-12) the school year starts; grades are computed from age on the 1st",
        min_value=1,
        max_value=12,
    ),
    "grouping.late_registration_days": ConfigKey(
        key="grouping.late_registration_days",
        config_type=ConfigType.INT,
        default=7,
        description="Days before camp start after which a registration counts as late",
        min_value=0,
        max_value=365,
    ),
    "grouping.grade_discrepancy_tolerance": ConfigKey(
        key="grouping.grade_discrepancy_tolerance",
        config_type=ConfigType.INT,
        default=0,
        description="Allowed difference between parent-reported and computed grade before flagging",
        min_value=0,
        max_value=12,
    ),
    "grouping.friend_requests.require_mutual": ConfigKey(
        key="grouping.friend_requests.require_mutual",
        config_type=ConfigType.BOOL,
        default=False,
        description="Only link campers whose friend requests are reciprocated",
    ),
}


def get_schema_key(key: str) -> ConfigKey | None:
    """
    Get the schema definition for a config key.

    Args:
        key: The dot-notation config key

    Returns:
        ConfigKey if found, None if unknown
    """
    return CONFIG_SCHEMA.get(key)


def get_defaults() -> dict[str, Any]:
    """Default value for every schema key."""
    return {key: schema.default for key, schema in CONFIG_SCHEMA.items()}


def validate_key(key: str, value: Any) -> str | None:
    """
    Validate a value against its schema.

    Args:
        key: The config key
        value: The value to validate

    Returns:
        None if valid, error message if invalid
    """
    schema = CONFIG_SCHEMA.get(key)
    if schema is None:
        return f"Unknown config key: {key}"
    return schema.validate(value)
