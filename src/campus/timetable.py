"""Parsing of compact timetable descriptor lines.

The campus-wide schedule query describes where a class meets with one line
per meeting, for example:

    周1-3,5,7-9 周二 3-4小节 教学楼A-101

i.e. a week list, a day-of-week token, a period range and a room. A line that
does not have this shape is skipped; it never aborts the rest of the pass.
"""

from collections.abc import Iterable

from src.campus.logging import get_logger
from src.campus.models import Course, OccupancyCandidate, Weekday

log = get_logger(__name__)

DAY_OF_WEEK_TOKENS: dict[str, Weekday] = {
    "周一": Weekday.MONDAY,
    "周二": Weekday.TUESDAY,
    "周三": Weekday.WEDNESDAY,
    "周四": Weekday.THURSDAY,
    "周五": Weekday.FRIDAY,
    "周六": Weekday.SATURDAY,
    "周日": Weekday.SUNDAY,
}


def expand_weeks(token: str) -> list[int]:
    """Expand a week list such as "周1-3,5" into [1, 2, 3, 5].

    Segments are unioned in order and duplicates across segments are kept.

    Raises:
        ValueError: If a segment is not an integer or an a-b range.
    """
    weeks: list[int] = []
    for segment in token.replace("周", "").replace("，", ",").split(","):
        segment = segment.strip()
        if "-" in segment:
            start, _, end = segment.partition("-")
            weeks.extend(range(int(start), int(end) + 1))
        else:
            weeks.append(int(segment))
    return weeks


def parse_day_of_week(token: str) -> Weekday:
    """Map "周一".."周日" to 1..7; anything else is Weekday.UNRECOGNIZED."""
    return DAY_OF_WEEK_TOKENS.get(token.strip(), Weekday.UNRECOGNIZED)


def parse_periods(token: str) -> tuple[int, int]:
    """Parse "3-4小节" into (3, 4) and "5小节" into (5, 5)."""
    body = token.replace("小节", "").strip()
    start, sep, end = body.partition("-")
    return int(start), (int(end) if sep else int(start))


def parse_line(line: str) -> OccupancyCandidate | None:
    """Parse one descriptor line.

    Returns:
        OccupancyCandidate, or None if the line is malformed.
    """
    tokens = line.split()
    if len(tokens) < 4:
        log.debug("timetable_line_skipped", line=line, reason="too_few_tokens")
        return None
    try:
        weeks = expand_weeks(tokens[0])
        start_period, end_period = parse_periods(tokens[2])
    except ValueError:
        log.debug("timetable_line_skipped", line=line, reason="malformed_number")
        return None

    return OccupancyCandidate(
        weeks=weeks,
        day_of_week=parse_day_of_week(tokens[1]),
        start_period=start_period,
        end_period=end_period,
        room=" ".join(tokens[3:]),
    )


def parse_lines(text: str) -> list[OccupancyCandidate]:
    """Parse every non-blank line, skipping malformed ones."""
    candidates: list[OccupancyCandidate] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        candidate = parse_line(line)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def decompose_teaching_classrooms(
    courses: Iterable[Course], week: int, day_of_week: int, start_period: int
) -> list[Course]:
    """Split multi-room courses into one record per room in use at a slot.

    Only courses listing more than one room are decomposed. A descriptor line
    yields a record when its weeks contain `week`, its day maps to
    `day_of_week` and its first period equals `start_period`.

    Returns:
        Distinct records, one room each, sorted by room name.
    """
    records: list[Course] = []
    for course in courses:
        if len(course.rooms) <= 1 or not course.schedule_text:
            continue
        for candidate in parse_lines(course.schedule_text):
            if (
                week in candidate.weeks
                and candidate.day_of_week == day_of_week
                and candidate.start_period == start_period
            ):
                records.append(
                    Course(
                        course_name=course.course_name,
                        teacher_name=course.teacher_name,
                        class_name=course.class_name,
                        classroom=candidate.room,
                    )
                )

    distinct = list(dict.fromkeys(records))
    distinct.sort(key=lambda record: record.classroom)
    return distinct


def building_names(courses: Iterable[Course]) -> list[str]:
    """Distinct buildings of single-room records, sorted."""
    return sorted({course.building_name for course in courses})
