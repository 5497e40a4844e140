"""Unit tests for roster standardization.

Tests the full pipeline from raw registrations to StandardizedCamper:
- Grade from DOB is authoritative, parent grade only flags discrepancies
- Late registration against explicit and derived cutoffs
- Friend requests by name and by explicit id pairs
- Input validation (duplicates, malformed records)
"""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from grouping.errors import ValidationError
from grouping.models import GroupingConfig
from grouping.standardization import (
    RawCamper,
    RawFriendRequest,
    StandardizationOptions,
    standardize,
    standardize_addition,
    standardize_roster,
)
from grouping.standardization.standardizer import resolve_cutoff

CAMP_START = date(2025, 7, 1)


def raw(athlete_id: str, first: str, last: str, dob: date | None = date(2016, 8, 15), **extra) -> dict:
    return {"athlete_id": athlete_id, "first_name": first, "last_name": last, "date_of_birth": dob, **extra}


class TestGrades:
    """Grade computation and discrepancy flags."""

    def test_grade_computed_from_dob(self):
        """DOB 2016-08-15 is 3rd grade for a July 2025 camp."""
        result = standardize_roster([raw("a1", "Emma", "Smith")], None, None, None, CAMP_START)
        camper = result.campers[0]

        assert camper.grade_computed_from_dob == 3
        assert camper.grade_validated == 3
        assert camper.grade_display == "3rd"
        assert camper.age_at_camp_start == 8
        assert camper.full_name == "Emma Smith"

    def test_reported_grade_mismatch_is_flagged_not_used(self):
        """The parent's grade never overrides the DOB grade."""
        result = standardize_roster(
            [raw("a1", "Emma", "Smith", grade_from_registration="4th")], None, None, None, CAMP_START
        )
        camper = result.campers[0]

        assert camper.grade_reported == 4
        assert camper.grade_validated == 3
        assert camper.grade_discrepancy is True
        assert any("Parent reported 4th" in w for w in result.warnings["a1"])

    def test_discrepancy_tolerance(self):
        options = StandardizationOptions(grade_discrepancy_tolerance=1)
        result = standardize_roster(
            [raw("a1", "Emma", "Smith", grade_from_registration="4")], None, None, None, CAMP_START, options
        )
        assert result.campers[0].grade_discrepancy is False

    def test_missing_dob_gives_unknown_grade(self):
        """Without DOB the grade is None and a warning is raised."""
        result = standardize_roster([raw("a1", "Emma", "Smith", dob=None)], None, None, None, CAMP_START)
        camper = result.campers[0]

        assert camper.grade_validated is None
        assert camper.grade_display == "Unknown"
        assert camper.grade_discrepancy is False
        assert any("Missing date of birth" in w for w in result.warnings["a1"])

    def test_unparseable_reported_grade_warns(self):
        result = standardize_roster(
            [raw("a1", "Emma", "Smith", grade_from_registration="rising star")], None, None, None, CAMP_START
        )
        assert result.campers[0].grade_reported is None
        assert any("Could not parse" in w for w in result.warnings["a1"])


class TestLateRegistration:
    """Late registration cutoffs."""

    def test_date_cutoff_includes_whole_day(self):
        campers = standardize(
            [
                raw("a1", "On", "Time", registered_at=datetime(2025, 6, 1, 23, 0, tzinfo=UTC)),
                raw("a2", "Late", "Comer", registered_at=datetime(2025, 6, 2, 0, 30, tzinfo=UTC)),
            ],
            None,
            None,
            date(2025, 6, 1),
            CAMP_START,
        )
        assert [c.is_late_registration for c in campers] == [False, True]

    def test_derived_cutoff_from_camp_start(self):
        """With no cutoff, registrations within late_registration_days of camp are late."""
        assert resolve_cutoff(None, CAMP_START, 7) == datetime(2025, 6, 24, tzinfo=UTC)

        campers = standardize(
            [
                raw("a1", "On", "Time", registered_at=datetime(2025, 6, 23, 12, 0, tzinfo=UTC)),
                raw("a2", "Late", "Comer", registered_at=datetime(2025, 6, 28, 9, 0, tzinfo=UTC)),
            ],
            None,
            None,
            None,
            CAMP_START,
        )
        assert [c.is_late_registration for c in campers] == [False, True]

    def test_registration_dates_override_record(self):
        """Dates passed separately win over the record's registered_at."""
        campers = standardize(
            [raw("a1", "Emma", "Smith", registered_at=datetime(2025, 1, 1, tzinfo=UTC))],
            None,
            {"a1": datetime(2025, 6, 30, tzinfo=UTC)},
            None,
            CAMP_START,
        )
        assert campers[0].is_late_registration is True

    def test_naive_datetimes_are_treated_as_utc(self):
        assert resolve_cutoff(datetime(2025, 6, 1, 12, 0), CAMP_START, 7) == datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class TestFriendRequests:
    """Friend request matching and grouping during standardization."""

    def test_name_requests_form_friend_group(self):
        """One-directional name requests link campers transitively."""
        result = standardize_roster(
            [
                raw("a1", "Emma", "Smith", friend_requests="Sarah Jones"),
                raw("a2", "Sarah", "Jones", friend_requests=["Liam"]),
                raw("a3", "Liam", "Park"),
                raw("a4", "Solo", "Camper"),
            ],
            None,
            None,
            None,
            CAMP_START,
        )
        by_id = {c.athlete_id: c for c in result.campers}

        assert len(result.friend_groups) == 1
        assert result.friend_groups[0].member_ids == ["a1", "a2", "a3"]
        assert by_id["a1"].friend_request_athlete_ids == ["a2"]
        assert by_id["a1"].friend_group_id == by_id["a3"].friend_group_id
        assert by_id["a1"].friend_group_number == 1
        assert result.solo_camper_ids == ["a4"]

    def test_explicit_pairs(self):
        result = standardize_roster(
            [raw("a1", "Emma", "Smith"), raw("a2", "Sarah", "Jones")],
            [RawFriendRequest(requester_id="a1", requested_id="a2")],
            None,
            None,
            CAMP_START,
        )
        assert result.friend_groups[0].member_ids == ["a1", "a2"]
        assert result.campers[0].friend_request_athlete_ids == ["a2"]

    def test_require_mutual_drops_one_way_requests(self):
        options = StandardizationOptions(require_mutual_requests=True)
        result = standardize_roster(
            [raw("a1", "Emma", "Smith"), raw("a2", "Sarah", "Jones"), raw("a3", "Liam", "Park")],
            [("a1", "a2"), ("a2", "a1"), ("a2", "a3")],
            None,
            None,
            CAMP_START,
            options,
        )
        assert [fg.member_ids for fg in result.friend_groups] == [["a1", "a2"]]

    def test_unmatched_request_warns(self):
        result = standardize_roster(
            [raw("a1", "Emma", "Smith", friend_requests="Nobody Here")], None, None, None, CAMP_START
        )
        assert result.friend_groups == []
        assert any("could not be matched" in w for w in result.warnings["a1"])

    def test_config_flags_unplaceable_friend_group(self):
        """A friend group spanning more grades than allowed is flagged for splitting."""
        result = standardize_roster(
            [raw("a1", "Young", "One", dob=date(2019, 6, 1)), raw("a2", "Old", "One", dob=date(2014, 6, 1))],
            [("a1", "a2")],
            None,
            None,
            CAMP_START,
            config=GroupingConfig(max_grade_spread=2),
        )
        friend_group = result.friend_groups[0]
        assert friend_group.exceeds_grade_constraint is True
        assert friend_group.can_be_placed_intact is False


class TestValidation:
    """Input validation."""

    def test_duplicate_athlete_ids_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            standardize_roster([raw("a1", "Emma", "Smith"), raw("a1", "Emma", "Smyth")], None, None, None, CAMP_START)
        assert exc_info.value.details["athlete_ids"] == ["a1"]

    def test_malformed_record_rejected(self):
        with pytest.raises(ValidationError):
            standardize_roster([{"athlete_id": "a1"}], None, None, None, CAMP_START)

    def test_accepts_model_instances(self):
        camper = RawCamper(athlete_id="a1", first_name="Emma", last_name="Smith")
        campers = standardize([camper], None, None, None, CAMP_START)
        assert campers[0].athlete_id == "a1"


class TestStandardizeAddition:
    """One registration added to an existing roster."""

    def existing(self):
        return standardize_roster(
            [raw("a1", "Emma", "Smith", friend_requests="Zoe Quinn"), raw("a2", "Sarah", "Jones")],
            None,
            None,
            None,
            CAMP_START,
        ).campers

    def test_links_in_both_directions(self):
        """The newcomer's requests match the roster and earlier typed requests now match the newcomer."""
        existing, camper, warnings = standardize_addition(
            raw("a3", "Zoe", "Quinn", friend_requests="Sarah Jones", registered_at=datetime(2025, 5, 1, tzinfo=UTC)),
            self.existing(),
            CAMP_START,
        )

        assert camper.grade_validated == 3
        assert camper.friend_request_athlete_ids == ["a2"]
        assert camper.is_late_registration is False
        assert warnings == []
        assert existing[0].friend_request_athlete_ids == ["a3"]
        assert existing[1].friend_request_athlete_ids == []

    def test_missing_registration_time_counts_as_now(self):
        _, camper, warnings = standardize_addition(
            raw("a3", "Zoe", "Quinn"),
            self.existing(),
            CAMP_START,
            now=datetime(2025, 6, 30, tzinfo=UTC),
        )

        assert camper.is_late_registration is True
        assert "Late registration" in warnings

    def test_duplicate_athlete_rejected(self):
        with pytest.raises(ValidationError):
            standardize_addition(raw("a1", "Emma", "Smith"), self.existing(), CAMP_START)
