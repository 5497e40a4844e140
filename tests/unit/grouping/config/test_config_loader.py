"""Unit tests for the schema-driven ConfigLoader."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from grouping.config import (
    CONFIG_SCHEMA,
    ConfigLoader,
    ConfigValidationError,
    DatabaseUnavailableError,
    UnknownKeyError,
    get_defaults,
    validate_key,
)


def loader_with_values(values: dict[str, object]):
    """ConfigLoader over a mocked PocketBase whose ``config`` records hold ``values`` by config_key."""
    pb = Mock()

    def get_first_list_item(filter_str):
        for config_key, value in values.items():
            if f'config_key = "{config_key}"' in filter_str:
                return Mock(value=value)
        raise ClientResponseError("not found", status=404)

    pb.collection.return_value.get_first_list_item = Mock(side_effect=get_first_list_item)
    return ConfigLoader(pb_client=pb), pb


class TestSchema:
    """Tests for the schema registry."""

    def test_defaults(self):
        defaults = get_defaults()
        assert defaults["grouping.max_group_size"] == 12
        assert defaults["grouping.max_grade_spread"] == 2
        assert defaults["grouping.num_groups"] is None
        assert set(defaults) == set(CONFIG_SCHEMA)

    def test_validate_key(self):
        assert validate_key("grouping.max_group_size", 10) is None
        assert "below minimum" in validate_key("grouping.max_group_size", 0)
        assert "not an integer" in validate_key("grouping.max_grade_spread", True)
        assert "Unknown config key" in validate_key("grouping.colour", 1)


class TestConfigLoader:
    """Tests for value resolution."""

    def test_defaults_without_database(self):
        config = ConfigLoader().get_grouping_config()
        assert (config.max_group_size, config.max_grade_spread, config.num_groups) == (12, 2, None)

    def test_unknown_key(self):
        with pytest.raises(UnknownKeyError):
            ConfigLoader().get("grouping.colour")

    def test_environment_wins(self):
        loader, _ = loader_with_values({"max_group_size": 20})
        with patch.dict("os.environ", {"CONFIG_GROUPING_MAX_GROUP_SIZE": "8"}):
            assert loader.get_int("grouping.max_group_size") == 8

    def test_database_value_used_and_cached(self):
        loader, pb = loader_with_values({"max_group_size": "15"})

        assert loader.get_int("grouping.max_group_size") == 15
        assert loader.get_int("grouping.max_group_size") == 15
        assert pb.collection.return_value.get_first_list_item.call_count == 1

        loader.invalidate_cache("grouping.max_group_size")
        loader.get_int("grouping.max_group_size")
        assert pb.collection.return_value.get_first_list_item.call_count == 2

    def test_nested_key_filter(self):
        """Three-part keys map to category / subcategory / config_key."""
        loader, pb = loader_with_values({"require_mutual": "yes"})

        assert loader.get_bool("grouping.friend_requests.require_mutual") is True
        filter_str = pb.collection.return_value.get_first_list_item.call_args[0][0]
        assert 'category = "grouping"' in filter_str
        assert 'subcategory = "friend_requests"' in filter_str

    def test_missing_record_falls_back_to_default(self):
        loader, _ = loader_with_values({})
        assert loader.get_int("grouping.late_registration_days") == 7

    def test_out_of_range_database_value(self):
        loader, _ = loader_with_values({"max_grade_spread": 40})
        with pytest.raises(ConfigValidationError):
            loader.get("grouping.max_grade_spread")

    def test_database_error(self):
        pb = Mock()
        pb.collection.return_value.get_first_list_item.side_effect = ClientResponseError("down", status=503)
        with pytest.raises(DatabaseUnavailableError):
            ConfigLoader(pb_client=pb).get("grouping.max_group_size")

    def test_overrides_ignore_none(self):
        config = ConfigLoader().get_grouping_config(num_groups=3, max_group_size=None)
        assert (config.num_groups, config.max_group_size) == (3, 12)

    def test_standardization_options(self):
        with patch.dict("os.environ", {"CONFIG_GROUPING_SCHOOL_YEAR_CUTOFF_MONTH": "8"}):
            options = ConfigLoader().get_standardization_options()
        assert options.school_year_cutoff_month == 8
        assert options.require_mutual_requests is False


class TestSingleton:
    """Tests for the singleton helpers."""

    def test_get_instance_auto_initializes(self):
        assert ConfigLoader.get_instance() is ConfigLoader.get_instance()

    def test_use_restores_previous(self):
        original = ConfigLoader.get_instance()
        replacement = ConfigLoader()

        with ConfigLoader.use(replacement):
            assert ConfigLoader.get_instance() is replacement

        assert ConfigLoader.get_instance() is original
