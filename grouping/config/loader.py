"""
ConfigLoader - schema-driven configuration for the grouping engine.

Resolution order for every key:
1. ``CONFIG_<KEY>`` environment variable (dots become underscores)
2. PocketBase ``config`` collection (category / subcategory / config_key)
3. Schema default

Without a PocketBase client the loader runs on environment and defaults
only, which is what tests and local development use.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, cast

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from grouping.models import GroupingConfig
from grouping.standardization.standardizer import StandardizationOptions

from .errors import ConfigValidationError, DatabaseUnavailableError, UnknownKeyError
from .schema import CONFIG_SCHEMA
from .types import ConfigType

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Grouping configuration loader.

    Usage:
        # At application startup
        ConfigLoader.initialize(pb_client=pb)

        loader = ConfigLoader.get_instance()
        max_size = loader.get_int("grouping.max_group_size")
        config = loader.get_grouping_config(num_groups=3)

        # Test substitution
        with ConfigLoader.use(ConfigLoader()):
            pass
    """

    _instance: ConfigLoader | None = None

    def __init__(
        self,
        pb_client: PocketBase | None = None,
        cache_ttl_seconds: int = 300,
    ):
        """
        Initialize the config loader.

        Args:
            pb_client: PocketBase client. If None, only environment and defaults are used.
            cache_ttl_seconds: Cache TTL in seconds (default 5 minutes).
        """
        self._pb = pb_client
        self._cache_ttl = cache_ttl_seconds
        self._cache: dict[str, tuple[Any, float]] = {}

    @classmethod
    def initialize(cls, pb_client: PocketBase | None = None) -> ConfigLoader:
        """Create the singleton loader, replacing any previous one."""
        cls._instance = cls(pb_client=pb_client)
        source = "PocketBase" if pb_client is not None else "environment/defaults"
        logger.info(f"ConfigLoader initialized ({source})")
        return cls._instance

    @classmethod
    def get_instance(cls) -> ConfigLoader:
        """Get the singleton instance, auto-initializing without a database."""
        if cls._instance is None:
            logger.debug("ConfigLoader auto-initializing (no explicit initialize() call)")
            return cls.initialize()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton state. For testing only."""
        cls._instance = None

    @classmethod
    @contextmanager
    def use(cls, loader: ConfigLoader) -> Iterator[None]:
        """
        Temporarily replace the singleton with a custom loader.

        Args:
            loader: The loader to use temporarily.
        """
        original = cls._instance
        cls._instance = loader
        try:
            yield
        finally:
            cls._instance = original

    def _get_env_key(self, key: str) -> str:
        """Convert dot notation to environment variable name."""
        # grouping.max_group_size -> CONFIG_GROUPING_MAX_GROUP_SIZE
        return "CONFIG_" + key.upper().replace(".", "_")

    def get(self, key: str) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (e.g., "grouping.max_group_size")

        Returns:
            The typed configuration value, or the schema default

        Raises:
            UnknownKeyError: If key is not in schema
            ConfigValidationError: If a value fails conversion or validation
            DatabaseUnavailableError: If PocketBase returns an unexpected error
        """
        if key not in CONFIG_SCHEMA:
            raise UnknownKeyError(f"Unknown config key: '{key}'")

        schema = CONFIG_SCHEMA[key]

        env_key = self._get_env_key(key)
        env_value = os.environ.get(env_key)
        if env_value is not None:
            return self._checked(key, env_value, source=env_key)

        if key in self._cache:
            value, timestamp = self._cache[key]
            if time.time() - timestamp < self._cache_ttl:
                return value

        raw_value = self._query_database_raw(key) if self._pb is not None else None
        value = schema.default if raw_value is None else self._checked(key, raw_value, source="database")

        self._cache[key] = (value, time.time())
        return value

    def _checked(self, key: str, raw_value: Any, source: str) -> Any:
        schema = CONFIG_SCHEMA[key]
        try:
            typed_value = self._convert_type(raw_value, schema.config_type)
        except (ValueError, TypeError) as e:
            raise ConfigValidationError(f"Config key '{key}' from {source} has invalid type: {e}") from e

        error = schema.validate(typed_value)
        if error:
            raise ConfigValidationError(f"Config key '{key}' from {source}: {error}")
        return typed_value

    def get_int(self, key: str) -> int:
        """Get an integer config value."""
        return cast(int, self.get(key))

    def get_optional_int(self, key: str) -> int | None:
        """Get an integer config value that may be unset."""
        return cast(int | None, self.get(key))

    def get_bool(self, key: str) -> bool:
        """Get a boolean config value."""
        return cast(bool, self.get(key))

    def get_grouping_config(self, **overrides: Any) -> GroupingConfig:
        """
        Build a GroupingConfig from configured defaults.

        Args:
            **overrides: Field values that take precedence (None values are ignored)

        Returns:
            Validated GroupingConfig
        """
        values: dict[str, Any] = {
            "max_group_size": self.get_int("grouping.max_group_size"),
            "max_grade_spread": self.get_int("grouping.max_grade_spread"),
            "num_groups": self.get_optional_int("grouping.num_groups"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return GroupingConfig(**values)

    def get_standardization_options(self) -> StandardizationOptions:
        """Build standardization options from configured defaults."""
        return StandardizationOptions(
            school_year_cutoff_month=self.get_int("grouping.school_year_cutoff_month"),
            late_registration_days=self.get_int("grouping.late_registration_days"),
            grade_discrepancy_tolerance=self.get_int("grouping.grade_discrepancy_tolerance"),
            require_mutual_requests=self.get_bool("grouping.friend_requests.require_mutual"),
        )

    @staticmethod
    def _split_key(key: str) -> tuple[str, str | None, str]:
        parts = key.split(".")
        if len(parts) == 1:
            return "general", None, parts[0]
        if len(parts) == 2:
            return parts[0], None, parts[1]
        return parts[0], "_".join(parts[1:-1]), parts[-1]

    def _query_database_raw(self, key: str) -> Any | None:
        """
        Query PocketBase for a config value.

        Args:
            key: The dot-notation config key

        Returns:
            The raw value from database, or None if not found

        Raises:
            DatabaseUnavailableError: For any error other than a missing record
        """
        assert self._pb is not None
        category, subcategory, config_key = self._split_key(key)

        filter_str = f'category = "{category}" && config_key = "{config_key}"'
        if subcategory:
            filter_str += f' && subcategory = "{subcategory}"'
        else:
            filter_str += ' && (subcategory = null || subcategory = "")'

        try:
            record = self._pb.collection("config").get_first_list_item(filter_str)
        except ClientResponseError as e:
            if getattr(e, "status", None) == 404:
                return None
            raise DatabaseUnavailableError(f"Database error fetching config key '{key}': {e}") from e
        return getattr(record, "value", None)

    def _convert_type(self, value: Any, config_type: ConfigType) -> Any:
        """Convert a raw value to the specified type."""
        if config_type == ConfigType.INT:
            return int(value)
        elif config_type == ConfigType.BOOL:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                return value.lower() in ("true", "1", "yes", "on")
            return bool(value)
        return str(value)

    def invalidate_cache(self, key: str | None = None) -> None:
        """
        Invalidate cached values.

        Args:
            key: Specific key to invalidate, or None for all
        """
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)
