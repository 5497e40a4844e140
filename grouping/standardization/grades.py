"""
Grade and age helpers.

Grades are integers: -1 = Pre-K, 0 = K, 1..12. The grade a camper is
grouped by is computed from date of birth; the parent-entered grade is only
compared against it to surface discrepancies for review.
"""

from __future__ import annotations

import re
from datetime import date

MIN_GRADE = -1
MAX_GRADE = 12

_PRE_K_PATTERN = re.compile(r"^(pre-?\s?k|pre-?\s?kindergarten|pk|preschool)$")
_KINDERGARTEN_PATTERN = re.compile(r"^(kindergarten|kinder|k)$")
_NUMERIC_PATTERN = re.compile(r"^(\d+)(st|nd|rd|th)?(\s*grade)?$")

_WORD_GRADES = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
    "eleventh": 11,
    "twelfth": 12,
}


def calculate_age_at_date(date_of_birth: date, at_date: date) -> int:
    """Age in complete years on ``at_date``."""
    age = at_date.year - date_of_birth.year
    if (at_date.month, at_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return max(0, age)


def calculate_age_months_at_date(date_of_birth: date, at_date: date) -> int:
    """Age in complete months on ``at_date`` (finer sort key than years)."""
    months = (at_date.year - date_of_birth.year) * 12 + (at_date.month - date_of_birth.month)
    if at_date.day < date_of_birth.day:
        months -= 1
    return max(0, months)


def parse_grade(grade_text: str | None) -> int | None:
    """Parse a parent-entered grade string.

    Handles "Pre-K"/"PK"/"preschool", "K"/"Kinder"/"Kindergarten",
    "3", "3rd", "3rd grade" and word forms like "third".

    Args:
        grade_text: Raw grade text from registration

    Returns:
        Numeric grade (-1 to 12) or None if unparseable
    """
    if not grade_text or not grade_text.strip():
        return None

    normalized = grade_text.strip().lower()

    if _PRE_K_PATTERN.match(normalized):
        return -1
    if _KINDERGARTEN_PATTERN.match(normalized):
        return 0

    numeric = _NUMERIC_PATTERN.match(normalized)
    if numeric:
        grade = int(numeric.group(1))
        return grade if 1 <= grade <= MAX_GRADE else None

    for word, grade in _WORD_GRADES.items():
        if re.search(rf"\b{word}\b", normalized):
            return grade

    return None


def school_year_start(camp_start_date: date, cutoff_month: int = 9) -> date:
    """First day of the school year that ``camp_start_date`` falls in."""
    if camp_start_date.month >= cutoff_month:
        return date(camp_start_date.year, cutoff_month, 1)
    return date(camp_start_date.year - 1, cutoff_month, 1)


def compute_grade_from_dob(date_of_birth: date, camp_start_date: date, cutoff_month: int = 9) -> int:
    """Expected grade from date of birth.

    A child who is 5 on the first day of the school year is in Kindergarten,
    6 is 1st grade, and so on. The result is clamped to Pre-K..12th.
    """
    age_at_school_start = calculate_age_at_date(date_of_birth, school_year_start(camp_start_date, cutoff_month))
    return max(MIN_GRADE, min(MAX_GRADE, age_at_school_start - 5))


def format_grade(grade: int | None) -> str:
    """Display string: "Pre-K", "K", "1st", "2nd", "3rd", "4th" ... "12th"."""
    if grade is None:
        return "Unknown"
    if grade == -1:
        return "Pre-K"
    if grade == 0:
        return "K"
    if grade == 1:
        return "1st"
    if grade == 2:
        return "2nd"
    if grade == 3:
        return "3rd"
    return f"{grade}th"


def format_grade_range(min_grade: int | None, max_grade: int | None) -> str:
    """Display string for a grade range like "K - 2nd"."""
    if min_grade is None or max_grade is None:
        return "Unknown"
    if min_grade == max_grade:
        return format_grade(min_grade)
    return f"{format_grade(min_grade)} - {format_grade(max_grade)}"


def detect_grade_discrepancy(reported_grade: int | None, computed_grade: int | None, tolerance: int = 0) -> bool:
    """Whether the parent-reported grade differs from the computed grade by more than ``tolerance``.

    Missing data on either side is not a discrepancy.
    """
    if reported_grade is None or computed_grade is None:
        return False
    return abs(reported_grade - computed_grade) > tolerance


def describe_grade_discrepancy(reported_grade: int, computed_grade: int, age_at_camp_start: int | None) -> str:
    """Human-readable explanation of a grade discrepancy for director review."""
    age_part = f" ({age_at_camp_start} years old at camp)" if age_at_camp_start is not None else ""
    prefix = (
        f"Parent reported {format_grade(reported_grade)}, but DOB{age_part} "
        f"suggests {format_grade(computed_grade)}."
    )
    if reported_grade > computed_grade:
        return f"{prefix} The camper may be advanced or the parent entered the upcoming school year."
    return f"{prefix} The camper may have been held back or there may be a data entry error."
