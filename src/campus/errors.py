"""Error hierarchy for portal access and schedule derivation.

Network and parse failures are absorbed at the gateway and parser boundary
and turned into typed results. The classes below cover what remains: login
retry classification (tenacity retries TransientError only) and the
semester/week arithmetic that must not fall back to a plausible default.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    async def login(username: str, password: str):
        ...
"""


class PortalError(Exception):
    """Base exception for all portal client errors."""

    pass


class TransientError(PortalError):
    """Temporary failure that may succeed on retry.

    Examples: the synthetic 502 produced when the portal is unreachable.
    """

    pass


class PermanentError(PortalError):
    """Failure that won't succeed on retry.

    Examples: malformed semester identifier, calendar without a start date.
    """

    pass


class AuthenticationError(PermanentError):
    """Login response did not establish a session.

    Wrong credentials cannot be fixed by retry.
    """

    pass


class SemesterFormatError(PermanentError, ValueError):
    """Semester identifier is not of the form YYYY-YYYY-N."""

    pass


class MissingStartDateError(PermanentError):
    """Calendar record carries no weekday anchor to derive the start date from."""

    pass


class WeekOutOfRangeError(PermanentError):
    """Computed week number falls before the semester start or past its end."""

    def __init__(self, week: int, total_weeks: int | None) -> None:
        self.week = week
        self.total_weeks = total_weeks
        if week < 1:
            reason = "before semester start"
        else:
            reason = f"beyond semester length {total_weeks}"
        super().__init__(f"Week {week} is out of range ({reason})")
