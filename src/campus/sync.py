"""ScheduleSyncEngine - semester, week and classroom state for schedule consumers.

The engine keeps one immutable ScheduleState and replaces it with
model_copy(update=...) on every change, so observers never see a
half-applied update. Network calls are the only suspension points; each
Result is built completely before it is published.
"""

import asyncio
from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.campus.api import PortalClient
from src.campus.errors import MissingStartDateError, WeekOutOfRangeError
from src.campus.logging import get_logger
from src.campus.models import (
    CalendarWeek,
    Classroom,
    Course,
    PlannedCourse,
    Result,
    ScheduleNote,
)
from src.campus.preferences import (
    ENTER_UNIVERSITY_YEAR,
    IS_DATE_DISPLAY,
    IS_OTHER_COURSE_DISPLAY,
    IS_TIME_DISPLAY,
    IS_YEAR_DISPLAY,
    YEAR_AND_SEMESTER,
    SharedPreference,
    UserPreferences,
)
from src.campus.semester import (
    Semester,
    enumerate_semesters,
    semester_start_date,
    semester_week_count,
    week_number,
)
from src.campus.streams import StateStream, Subscription
from src.campus.timetable import building_names, decompose_teaching_classrooms

log = get_logger(__name__)


class ScheduleState(BaseModel):
    """Everything a schedule consumer renders from."""

    model_config = ConfigDict(frozen=True)

    courses: Result[list[Course]] = Field(default_factory=Result)
    semesters: list[str] = Field(default_factory=list)
    browsed_semester: str | None = None
    current_semester: str | None = None
    start_date: date | None = None
    current_week: int | None = None
    current_week_error: str | None = None  # Why current_week is absent, if it is
    browsed_week: int | None = None
    day_of_week: int = 1  # ISO weekday, 1 = Monday
    teaching_classrooms: Result[list[Course]] = Field(default_factory=Result)
    empty_classrooms: Result[list[Classroom]] = Field(default_factory=Result)
    building_names: list[str] | None = None
    schedule_notes: Result[list[ScheduleNote]] = Field(default_factory=Result)
    planned_schedule: Result[list[PlannedCourse]] = Field(default_factory=Result)
    is_planned_schedule_visible: bool = False
    is_other_course_display: bool = False
    is_year_display: bool = False
    is_date_display: bool = False
    is_time_display: bool = False


# State field mirrored from each display preference
_DISPLAY_PREFERENCES = {
    "is_other_course_display": IS_OTHER_COURSE_DISPLAY,
    "is_year_display": IS_YEAR_DISPLAY,
    "is_date_display": IS_DATE_DISPLAY,
    "is_time_display": IS_TIME_DISPLAY,
}


class ScheduleSyncEngine:
    """Loads schedule data from the portal and publishes it as ScheduleState."""

    def __init__(
        self,
        client: PortalClient,
        preferences: UserPreferences,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._preferences = preferences
        self._today = today
        self._year_and_semester = preferences.shared(YEAR_AND_SEMESTER)
        self._enter_university_year = preferences.shared(ENTER_UNIVERSITY_YEAR)
        self._state = StateStream(ScheduleState(day_of_week=today().isoweekday()))
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def state(self) -> ScheduleState:
        return self._state.value

    def observe(self) -> Subscription[ScheduleState]:
        return self._state.subscribe()

    def _update(self, **changes: Any) -> None:
        self._state.update(lambda state: state.model_copy(update=changes))

    async def start(self) -> None:
        """Mirror the semester and display preferences into the state."""
        if self._tasks:
            return
        for field, key in _DISPLAY_PREFERENCES.items():
            self._tasks.append(
                asyncio.create_task(
                    self._mirror(
                        self._preferences.shared(key),
                        lambda value, field=field: self._update(**{field: value}),
                    )
                )
            )
        for shared in (self._year_and_semester, self._enter_university_year):
            self._tasks.append(
                asyncio.create_task(
                    self._mirror(shared, lambda _: self._refresh_current_semester())
                )
            )
        log.debug("schedule_engine_started", subscriptions=len(self._tasks))

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _mirror(self, shared: SharedPreference[Any], apply: Callable[[Any], None]) -> None:
        async with shared.subscribe() as values:
            async for value in values:
                apply(value)

    def _refresh_current_semester(self) -> None:
        year_and_semester = self._year_and_semester.value
        if year_and_semester and self._enter_university_year.value:
            self._update(current_semester=year_and_semester)

    def set_browsed_semester(self, semester: str | None) -> None:
        self._update(browsed_semester=semester)

    def set_browsed_week(self, week: int) -> None:
        self._update(browsed_week=week)

    def set_planned_schedule_visible(self, visible: bool) -> None:
        self._update(is_planned_schedule_visible=visible)

    def semesters(self) -> list[str]:
        """Semesters from enrollment through the configured one; empty if unset or invalid."""
        configured = self._year_and_semester.value
        enrollment = self._enter_university_year.value
        if not configured or not enrollment:
            return []
        try:
            return enumerate_semesters(int(enrollment), Semester.parse(configured))
        except ValueError as e:
            log.warning(
                "semester_list_unavailable",
                enter_university_year=enrollment,
                year_and_semester=configured,
                error=str(e),
            )
            return []

    async def load_schedule(self, semester: str | None = None) -> None:
        """Load semesters, start date, current week and courses for a semester.

        Args:
            semester: Semester to browse; the configured semester when None.
        """
        semesters = self.semesters()
        target = semester or self._year_and_semester.value or None
        if target is None:
            log.warning("schedule_semester_unset")
            self._update(semesters=semesters, courses=Result.of(None))
            return

        calendar = await self._client.get_calendar(target)
        start_date: date | None = None
        start_error: str | None = None
        if calendar is None:
            start_error = "calendar unavailable"
        else:
            try:
                start_date = semester_start_date(calendar)
            except MissingStartDateError as e:
                start_error = str(e)
                log.warning("semester_start_unknown", semester=target, error=start_error)

        self._update(browsed_semester=target, semesters=semesters, start_date=start_date)

        if semesters and target == semesters[-1]:
            self._update(**self._current_week_changes(start_date, start_error, calendar))

        courses = await self._client.get_schedule(target)
        self._update(courses=Result.of(courses))
        log.info(
            "schedule_loaded",
            semester=target,
            courses=None if courses is None else len(courses),
            current_week=self.state.current_week,
        )

    def _current_week_changes(
        self,
        start_date: date | None,
        start_error: str | None,
        calendar: list[CalendarWeek] | None,
    ) -> dict[str, Any]:
        if start_date is None:
            return {"current_week": None, "current_week_error": start_error}
        try:
            week = week_number(start_date, self._today(), semester_week_count(calendar or []))
        except WeekOutOfRangeError as e:
            log.warning("current_week_out_of_range", week=e.week, total_weeks=e.total_weeks)
            return {"current_week": None, "current_week_error": str(e)}
        return {"current_week": week, "current_week_error": None, "browsed_week": week}

    async def load_teaching_classrooms(self, day_of_week: int, node: int) -> None:
        """Rooms in use by multi-room courses at a paired period of the browsed week.

        Args:
            day_of_week: ISO weekday, 1 = Monday.
            node: Paired period number; node 2 covers periods 3-4.
        """
        self._update(building_names=None, teaching_classrooms=Result())
        start_node, end_node = node * 2 - 1, node * 2
        semester = self.state.browsed_semester
        week = self.state.browsed_week

        courses: list[Course] | None = None
        if semester is not None and week is not None:
            courses = await self._client.get_global_schedule(
                semester=semester,
                start_week=week,
                end_week=week,
                start_day_of_week=day_of_week,
                end_day_of_week=day_of_week,
                start_node=start_node,
                end_node=end_node,
            )
        else:
            log.warning("teaching_classrooms_unbrowsed", semester=semester, week=week)

        if courses is None:
            self._update(teaching_classrooms=Result.of(None))
            return

        records = decompose_teaching_classrooms(courses, week, day_of_week, start_node)
        self._update(
            building_names=building_names(records),
            teaching_classrooms=Result.of(records),
        )
        log.info(
            "teaching_classrooms_loaded",
            week=week,
            day_of_week=day_of_week,
            node=node,
            candidates=len(courses),
            rooms=len(records),
        )

    async def load_empty_classroom(self, day_of_week: int, node: int) -> None:
        """Free rooms at a paired period of the browsed week."""
        self._update(building_names=None, empty_classrooms=Result())
        week = self.state.browsed_week

        rooms: list[Classroom] | None = None
        if week is not None:
            rooms = await self._client.get_empty_classroom(
                week_no=[week], day_of_week_no=[day_of_week], node_no=[node]
            )
        else:
            log.warning("empty_classroom_unbrowsed")

        self._update(
            building_names=(
                None
                if rooms is None
                else sorted({room.building_name or "" for room in rooms})
            ),
            empty_classrooms=Result.of(rooms),
        )

    async def load_schedule_notes(self) -> None:
        notes = await self._client.get_schedule_notes(self.state.browsed_semester)
        self._update(schedule_notes=Result.of(notes))

    async def load_planned_schedule(self) -> None:
        """Show the planned-schedule panel at once, then fill it."""
        self._update(is_planned_schedule_visible=True, planned_schedule=Result())
        planned = await self._client.get_planned_schedule()
        self._update(planned_schedule=Result.of(planned))
