"""
Unit tests for semester identifiers and teaching-week arithmetic.
"""

from datetime import date

import pytest

from src.campus.errors import MissingStartDateError, SemesterFormatError, WeekOutOfRangeError
from src.campus.models import CalendarWeek
from src.campus.semester import (
    Semester,
    enumerate_semesters,
    semester_start_date,
    semester_week_count,
    week_number,
)


class TestSemester:
    def test_parse_and_format(self):
        semester = Semester.parse("2023-2024-1")

        assert semester == Semester(2023, 1)
        assert str(semester) == "2023-2024-1"

    @pytest.mark.parametrize("text", ["2023-2024-3", "2023-2025-1", "2023-1", "", "abcd-efgh-1"])
    def test_malformed_identifiers(self, text):
        with pytest.raises(SemesterFormatError):
            Semester.parse(text)

    def test_format_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            Semester.parse("nope")

    def test_ordering_by_year_then_term(self):
        assert Semester(2022, 2) < Semester(2023, 1) < Semester(2023, 2)

    def test_next_rolls_over_year(self):
        assert Semester(2022, 1).next() == Semester(2022, 2)
        assert Semester(2022, 2).next() == Semester(2023, 1)


class TestEnumerateSemesters:
    def test_enrollment_through_configured(self):
        assert enumerate_semesters(2021, Semester.parse("2023-2024-1")) == [
            "2021-2022-1",
            "2021-2022-2",
            "2022-2023-1",
            "2022-2023-2",
            "2023-2024-1",
        ]

    def test_single_semester(self):
        assert enumerate_semesters(2023, Semester(2023, 1)) == ["2023-2024-1"]

    def test_spring_enrollment(self):
        assert enumerate_semesters(2023, Semester(2024, 1), enrollment_term=2) == [
            "2023-2024-2",
            "2024-2025-1",
        ]

    def test_end_before_enrollment_is_empty(self):
        assert enumerate_semesters(2024, Semester(2023, 2)) == []


class TestStartDate:
    def test_monday_anchor(self):
        calendar = [CalendarWeek(year_and_month="2023-09", monday="4", tuesday="5")]

        assert semester_start_date(calendar) == date(2023, 9, 4)

    def test_first_present_anchor_mid_week(self):
        calendar = [CalendarWeek(year_and_month="2024-02", wednesday="28", thursday="29")]

        assert semester_start_date(calendar) == date(2024, 2, 28)

    def test_accepts_wire_keys(self):
        calendar = [CalendarWeek.model_validate({"yearAndMonth": "2023-09", "monday": "4"})]

        assert semester_start_date(calendar) == date(2023, 9, 4)

    def test_no_anchor_raises(self):
        with pytest.raises(MissingStartDateError):
            semester_start_date([CalendarWeek(year_and_month="2023-09")])

    def test_empty_calendar_raises(self):
        with pytest.raises(MissingStartDateError):
            semester_start_date([])

    def test_invalid_day_raises(self):
        with pytest.raises(MissingStartDateError):
            semester_start_date([CalendarWeek(year_and_month="2023-02", monday="30")])

    def test_week_count_prefers_week_numbers(self):
        calendar = [
            CalendarWeek(year_and_month="2023-09", week_no=1),
            CalendarWeek(year_and_month="2023-09", week_no=4),
            CalendarWeek(year_and_month="2023-10", week_no=4),
        ]

        assert semester_week_count(calendar) == 4

    def test_week_count_falls_back_to_rows(self):
        calendar = [CalendarWeek(year_and_month="2023-09") for _ in range(3)]

        assert semester_week_count(calendar) == 3


class TestWeekNumber:
    @pytest.mark.parametrize(
        "today, expected",
        [
            (date(2023, 9, 4), 1),
            (date(2023, 9, 10), 1),
            (date(2023, 9, 11), 2),
        ],
    )
    def test_week_from_monday_start(self, today, expected):
        assert week_number(date(2023, 9, 4), today) == expected

    def test_before_start_is_out_of_range(self):
        with pytest.raises(WeekOutOfRangeError) as exc_info:
            week_number(date(2023, 9, 4), date(2023, 9, 3))

        assert exc_info.value.week == 0

    def test_past_last_week_is_out_of_range(self):
        with pytest.raises(WeekOutOfRangeError):
            week_number(date(2023, 9, 4), date(2024, 1, 15), total_weeks=18)

    def test_last_week_is_in_range(self):
        assert week_number(date(2023, 9, 4), date(2024, 1, 6), total_weeks=18) == 18
