"""Pydantic models for portal wire data and derived results.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Wire models accept the portal's camelCase keys through aliases and ignore
fields they do not use.
"""

from enum import Enum, IntEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

# Message carried by the synthetic response for transport failures
TRANSPORT_FAILURE_MESSAGE = "Failed to connect to Internet"
TRANSPORT_FAILURE_STATUS = 502

_WIRE_CONFIG = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class Cookie(BaseModel):
    """A single cookie as issued by a Set-Cookie header."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    domain: str | None = None
    path: str | None = None
    max_age: int | None = None
    expires: str | None = None  # Raw Expires attribute, e.g. "Thu, 01-Jan-1970 00:00:10 GMT"
    secure: bool = False
    http_only: bool = False

    @property
    def is_expired(self) -> bool:
        """True for deletion cookies (Max-Age=0 or negative)."""
        return self.max_age is not None and self.max_age <= 0


class PortalRequest(BaseModel):
    """Outgoing request relative to the configured base URL."""

    method: str = "GET"
    path: str  # e.g. "login", "admin/schedule/student"
    params: dict[str, Any] | None = None
    data: dict[str, Any] | None = None


class PortalResponse(BaseModel):
    """Response as seen by callers of HttpGateway.send()."""

    url: str
    status_code: int
    message: str = ""  # HTTP reason phrase, or TRANSPORT_FAILURE_MESSAGE
    text: str = ""
    cookies: list[Cookie] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return self.status_code in (301, 302, 303, 307, 308)

    @property
    def is_transport_failure(self) -> bool:
        return (
            self.status_code == TRANSPORT_FAILURE_STATUS
            and self.message == TRANSPORT_FAILURE_MESSAGE
            and not self.text
        )


class Course(BaseModel):
    """A scheduled class as returned by the schedule endpoints.

    The campus-wide query returns one Course per logical class; when a class
    meets in several rooms, `classroom` lists them comma-separated and
    `schedule_text` carries one descriptor line per meeting, e.g.
    "周1-16 周三 3-4小节 教学楼A-101".
    """

    model_config = _WIRE_CONFIG

    course_name: str = Field(default="", alias="courseName")
    teacher_name: str = Field(default="", alias="teacherName")
    class_name: str = Field(default="", alias="className")
    classroom: str = Field(default="", alias="classroomName")
    schedule_text: str | None = Field(default=None, alias="sksjdd")
    day_of_week: int | None = Field(default=None, alias="dayOfWeek")
    start_node: int | None = Field(default=None, alias="startNode")
    end_node: int | None = Field(default=None, alias="endNode")
    weeks: str | None = None  # Compact week list, e.g. "1-8,10"

    @property
    def rooms(self) -> list[str]:
        return [room.strip() for room in self.classroom.split(",") if room.strip()]

    @property
    def building_name(self) -> str:
        """Text before the first "-" of the classroom."""
        return self.classroom.split("-")[0]


class Classroom(BaseModel):
    """A room returned by the empty-classroom query."""

    model_config = _WIRE_CONFIG

    classroom_name: str = Field(default="", alias="classroomName")
    building_name: str | None = Field(default=None, alias="buildingName")
    capacity: int | None = None
    campus_name: str | None = Field(default=None, alias="campusName")


class CalendarWeek(BaseModel):
    """One row of the academic calendar: a week with its day-of-month numbers.

    Days outside the semester are null, so the first row may start mid-week.
    """

    model_config = _WIRE_CONFIG

    week_no: int | None = Field(default=None, alias="weekNo")
    year_and_month: str = Field(alias="yearAndMonth")  # "2023-09"
    monday: str | None = None
    tuesday: str | None = None
    wednesday: str | None = None
    thursday: str | None = None
    friday: str | None = None
    saturday: str | None = None
    sunday: str | None = None

    def first_anchor(self) -> str | None:
        """First non-null day-of-month, checked Monday through Sunday."""
        for day in (
            self.monday,
            self.tuesday,
            self.wednesday,
            self.thursday,
            self.friday,
            self.saturday,
            self.sunday,
        ):
            if day is not None and day.strip():
                return day.strip()
        return None


class ScheduleNote(BaseModel):
    """Free-text remark attached to a course for the semester."""

    model_config = _WIRE_CONFIG

    course_name: str = Field(default="", alias="courseName")
    teacher_name: str = Field(default="", alias="teacherName")
    class_name: str = Field(default="", alias="className")
    note: str = ""


class PlannedCourse(BaseModel):
    """Course from the student's plan for future semesters."""

    model_config = _WIRE_CONFIG

    course_name: str = Field(default="", alias="courseName")
    semester: str | None = Field(default=None, alias="yearAndSemester")
    credit: float | None = None
    hours: int | None = None
    course_type: str | None = Field(default=None, alias="courseType")


class Weekday(IntEnum):
    """ISO day of week, with an explicit value for tokens that do not match."""

    UNRECOGNIZED = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class OccupancyCandidate(BaseModel):
    """One parsed descriptor line: "周1-3,5 周二 3-4小节 教室A"."""

    model_config = ConfigDict(frozen=True)

    weeks: list[int]  # Expanded, duplicates preserved
    day_of_week: Weekday
    start_period: int
    end_period: int
    room: str


class LoadStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"


class Result(BaseModel, Generic[T]):
    """Outcome of one load: loading, success (possibly empty) or failure.

    `data is None` means the load failed or has not finished; an empty list
    is a successful load with zero items.
    """

    model_config = ConfigDict(frozen=True)

    status: LoadStatus = LoadStatus.LOADING
    data: T | None = None

    @classmethod
    def of(cls, data: T | None) -> "Result[T]":
        """Wrap a fetch outcome, where None stands for absent data."""
        if data is None:
            return cls(status=LoadStatus.FAILURE)
        return cls(status=LoadStatus.SUCCESS, data=data)

    @property
    def is_loading(self) -> bool:
        return self.status is LoadStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is LoadStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status is LoadStatus.FAILURE

    @property
    def is_data_empty(self) -> bool:
        """True only for a successful load with zero items."""
        return self.is_success and not self.data
