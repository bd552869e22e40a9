"""Semester identifiers and teaching-week arithmetic.

A semester identifier looks like "2023-2024-1": the academic year pair and
the term number (1 = autumn, 2 = spring). Identifiers order by
(start year, term).
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from src.campus.errors import MissingStartDateError, SemesterFormatError, WeekOutOfRangeError
from src.campus.models import CalendarWeek

_SEMESTER_RE = re.compile(r"^(\d{4})-(\d{4})-([12])$")

TERMS_PER_YEAR = 2


@dataclass(frozen=True, order=True)
class Semester:
    start_year: int
    term: int

    @classmethod
    def parse(cls, text: str) -> "Semester":
        """Parse "YYYY-YYYY-N".

        Raises:
            SemesterFormatError: If the text is malformed or the years are not consecutive.
        """
        match = _SEMESTER_RE.match(text.strip())
        if match is None:
            raise SemesterFormatError(f"Invalid semester identifier {text!r}")
        start, end, term = (int(group) for group in match.groups())
        if end != start + 1:
            raise SemesterFormatError(f"Years in {text!r} are not consecutive")
        return cls(start, term)

    def next(self) -> "Semester":
        if self.term < TERMS_PER_YEAR:
            return Semester(self.start_year, self.term + 1)
        return Semester(self.start_year + 1, 1)

    def __str__(self) -> str:
        return f"{self.start_year}-{self.start_year + 1}-{self.term}"


def enumerate_semesters(
    enrollment_year: int, end: Semester, enrollment_term: int = 1
) -> list[str]:
    """Every semester from enrollment through `end`, inclusive and ascending.

    >>> enumerate_semesters(2021, Semester(2022, 1))
    ['2021-2022-1', '2021-2022-2', '2022-2023-1']

    Returns an empty list when `end` precedes the enrollment semester.
    """
    semesters: list[str] = []
    current = Semester(enrollment_year, enrollment_term)
    while current <= end:
        semesters.append(str(current))
        current = current.next()
    return semesters


def semester_start_date(calendar: Sequence[CalendarWeek]) -> date:
    """Start date from the first calendar row: first weekday anchor plus year-month.

    Raises:
        MissingStartDateError: If there is no row, no anchor, or the date is invalid.
    """
    if not calendar:
        raise MissingStartDateError("Calendar is empty")
    first = calendar[0]
    day = first.first_anchor()
    if day is None:
        raise MissingStartDateError(f"No weekday anchor in calendar row {first.year_and_month}")
    try:
        return date.fromisoformat(f"{first.year_and_month}-{int(day):02d}")
    except ValueError as e:
        raise MissingStartDateError(
            f"Invalid start date {first.year_and_month}-{day}"
        ) from e


def semester_week_count(calendar: Sequence[CalendarWeek]) -> int | None:
    """Number of teaching weeks, from the week numbers when the portal sends them."""
    numbers = [week.week_no for week in calendar if week.week_no is not None]
    if numbers:
        return max(numbers)
    return len(calendar) or None


def week_number(start: date, today: date, total_weeks: int | None = None) -> int:
    """1-based count of 7-day periods from `start` to `today`.

    Raises:
        WeekOutOfRangeError: If `today` is before `start` or past `total_weeks`.
    """
    week = (today - start).days // 7 + 1
    if week < 1 or (total_weeks is not None and week > total_weeks):
        raise WeekOutOfRangeError(week, total_weeks)
    return week
