"""Portal endpoints on top of HttpGateway.

Each getter returns parsed models, or None when no usable data came back:
transport failure, non-2xx status, empty body, undecodable JSON, or a
payload that does not validate. An empty list is a valid answer and is
returned as such.
"""

import json
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.campus.config import PortalConfig
from src.campus.errors import AuthenticationError, TransientError
from src.campus.gateway import HttpGateway
from src.campus.logging import get_logger
from src.campus.models import (
    CalendarWeek,
    Classroom,
    Course,
    PlannedCourse,
    PortalRequest,
    ScheduleNote,
)
from src.campus.session import is_login_cookie_set

M = TypeVar("M", bound=BaseModel)

log = get_logger(__name__)


class PortalClient:
    """Typed access to the portal's JSON endpoints.

    Paths are relative to PortalConfig.base_url.
    """

    LOGIN_PATH = "login"
    SCHEDULE_PATH = "admin/pkgl/xskb/queryKbForXsd"
    GLOBAL_SCHEDULE_PATH = "admin/pkgl/kbcx/queryKbList"
    CALENDAR_PATH = "admin/xsd/xsdxl/getXl"
    EMPTY_CLASSROOM_PATH = "admin/pkgl/jyjs/queryKxjs"
    SCHEDULE_NOTES_PATH = "admin/pkgl/xskb/queryKbbz"
    PLANNED_SCHEDULE_PATH = "admin/xsd/xsdpyfa/queryPyfaKc"

    def __init__(self, gateway: HttpGateway, config: PortalConfig) -> None:
        self.gateway = gateway
        self._config = config

    async def login(self, username: str, password: str) -> None:
        """Post the login form and verify that a session was established.

        Retries while the portal is unreachable but fails fast on a rejected login.

        Raises:
            AuthenticationError: If the response did not carry a login cookie set.
            TransientError: If the portal stayed unreachable for every attempt.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.login_attempts),
            wait=wait_fixed(self._config.login_retry_wait_seconds),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._attempt_login(username, password)

    async def _attempt_login(self, username: str, password: str) -> None:
        log.info("login_started", username=username)
        response = await self.gateway.send(
            PortalRequest(
                method="POST",
                path=self.LOGIN_PATH,
                data={"username": username, "password": password},
            )
        )
        if response.is_transport_failure:
            raise TransientError(f"Login failed: {response.message}")
        if not is_login_cookie_set(response.cookies):
            log.error("login_rejected", status=response.status_code)
            raise AuthenticationError(
                "Login response did not establish a session - may be invalid credentials"
            )
        log.info("login_succeeded", username=username)

    async def get_schedule(self, semester: str | None) -> list[Course] | None:
        """The student's own courses for a semester (portal default when None)."""
        return await self._fetch_list(
            PortalRequest(path=self.SCHEDULE_PATH, params=_semester_params(semester)),
            Course,
        )

    async def get_global_schedule(
        self,
        semester: str,
        start_week: int,
        end_week: int,
        start_day_of_week: int,
        end_day_of_week: int,
        start_node: int,
        end_node: int,
    ) -> list[Course] | None:
        """Every course on campus in the given week/day/period window."""
        return await self._fetch_list(
            PortalRequest(
                path=self.GLOBAL_SCHEDULE_PATH,
                params={
                    "xnxq": semester,
                    "zc1": start_week,
                    "zc2": end_week,
                    "xingqi1": start_day_of_week,
                    "xingqi2": end_day_of_week,
                    "jc1": start_node,
                    "jc2": end_node,
                },
            ),
            Course,
        )

    async def get_calendar(self, semester: str | None) -> list[CalendarWeek] | None:
        return await self._fetch_list(
            PortalRequest(path=self.CALENDAR_PATH, params=_semester_params(semester)),
            CalendarWeek,
        )

    async def get_empty_classroom(
        self, week_no: list[int], day_of_week_no: list[int], node_no: list[int]
    ) -> list[Classroom] | None:
        """Rooms free in every given week/day/paired-period combination."""
        return await self._fetch_list(
            PortalRequest(
                path=self.EMPTY_CLASSROOM_PATH,
                params={
                    "zc": _join(week_no),
                    "xq": _join(day_of_week_no),
                    "jc": _join(node_no),
                },
            ),
            Classroom,
        )

    async def get_schedule_notes(self, semester: str | None) -> list[ScheduleNote] | None:
        return await self._fetch_list(
            PortalRequest(path=self.SCHEDULE_NOTES_PATH, params=_semester_params(semester)),
            ScheduleNote,
        )

    async def get_planned_schedule(self) -> list[PlannedCourse] | None:
        return await self._fetch_list(
            PortalRequest(path=self.PLANNED_SCHEDULE_PATH), PlannedCourse
        )

    async def _fetch_list(self, request: PortalRequest, model: type[M]) -> list[M] | None:
        response = await self.gateway.send(request)
        if not response.ok or not response.text.strip():
            log.warning(
                "portal_payload_absent",
                path=request.path,
                status=response.status_code,
                message=response.message,
            )
            return None

        try:
            payload: Any = json.loads(response.text)
        except json.JSONDecodeError as e:
            log.warning("portal_payload_undecodable", path=request.path, error=str(e))
            return None

        # Endpoints answer either a bare list or {"data": [...], ...}
        if isinstance(payload, dict):
            payload = payload.get("data")
        if payload is None:
            log.warning("portal_payload_absent", path=request.path, status=response.status_code)
            return None

        try:
            items = TypeAdapter(list[model]).validate_python(payload)
        except ValidationError as e:
            log.warning(
                "portal_payload_invalid",
                path=request.path,
                errors=e.error_count(),
            )
            return None

        log.debug("portal_payload_parsed", path=request.path, items=len(items))
        return items


def _semester_params(semester: str | None) -> dict[str, str] | None:
    return {"xnxq": semester} if semester else None


def _join(values: list[int]) -> str:
    return ",".join(str(value) for value in values)
