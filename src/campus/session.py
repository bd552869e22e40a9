"""Session cookie ownership and login detection.

SessionStore holds the cookie set for the one authenticated identity,
restores it from the persisted preferences, and replaces it only when a
response from the canonical login endpoint carries exactly two rememberMe
cookies. The portal answers a successful login with a rememberMe deletion
cookie followed by the new one; any other count is not a login.
"""

import asyncio
from collections.abc import Iterable

from pydantic import ValidationError

from src.campus.logging import get_logger
from src.campus.models import Cookie
from src.campus.preferences import COOKIES, UserPreferences
from src.campus.streams import StateStream, Subscription

logger = get_logger(__name__)

REMEMBER_ME_COOKIE = "rememberMe"
LOGIN_REMEMBER_ME_COUNT = 2


def count_remember_me(cookies: Iterable[Cookie]) -> int:
    return sum(1 for cookie in cookies if cookie.name == REMEMBER_ME_COOKIE)


def is_login_cookie_set(cookies: Iterable[Cookie]) -> bool:
    """True when the cookies are what a successful login response issues."""
    return count_remember_me(cookies) == LOGIN_REMEMBER_ME_COUNT


class SessionStore:
    """Owns the session cookies for the process.

    Readers get the last committed snapshot without touching the network.
    Commits and clears run under one lock so that update, persistence and
    notification happen as a unit and subscribers see them in commit order.
    """

    def __init__(self, preferences: UserPreferences, login_url: str) -> None:
        """Initialize SessionStore.

        Args:
            preferences: Typed preferences the cookies are persisted through.
            login_url: Canonical login endpoint, compared verbatim.
        """
        self.login_url = login_url
        self._preferences = preferences
        self._lock = asyncio.Lock()
        self._cookies: StateStream[list[Cookie]] = StateStream(self._restore())

        logger.info(
            "session_store_initialized",
            restored_cookies=len(self._cookies.value),
            logged_in=self.is_logged_in,
        )

    def _restore(self) -> list[Cookie]:
        stored = self._preferences.get(COOKIES)
        try:
            return [Cookie.model_validate(item) for item in stored]
        except (ValidationError, TypeError) as e:
            logger.warning("session_restore_failed", error=str(e))
            return []

    @property
    def is_logged_in(self) -> bool:
        return is_login_cookie_set(self._cookies.value)

    def current_cookies(self) -> list[Cookie]:
        return list(self._cookies.value)

    def observe_cookies(self) -> Subscription[list[Cookie]]:
        return self._cookies.subscribe()

    def request_cookies(self) -> list[Cookie]:
        """Cookies to send: one per name, last live value wins, deletions dropped."""
        by_name: dict[str, Cookie] = {}
        for cookie in self._cookies.value:
            if cookie.is_expired:
                continue
            by_name[cookie.name] = cookie
        return list(by_name.values())

    def cookie_header(self) -> str | None:
        cookies = self.request_cookies()
        if not cookies:
            return None
        return "; ".join(f"{cookie.name}={cookie.value}" for cookie in cookies)

    async def commit_if_login(self, request_url: str, response_cookies: Iterable[Cookie]) -> bool:
        """Replace the session with response_cookies if they establish a login.

        Returns:
            True if the session was replaced.
        """
        if request_url != self.login_url:
            return False

        cookies = list(response_cookies)
        count = count_remember_me(cookies)
        if count != LOGIN_REMEMBER_ME_COUNT:
            logger.info("session_commit_skipped", remember_me_count=count)
            return False

        await self._replace(cookies, reason="login")
        return True

    async def clear(self) -> None:
        """Drop every cookie (logout, or a reset while debugging)."""
        await self._replace([], reason="clear")

    async def _replace(self, cookies: list[Cookie], reason: str) -> None:
        async with self._lock:
            await self._preferences.change(
                COOKIES, [cookie.model_dump() for cookie in cookies]
            )
            self._cookies.set(cookies)
        logger.info(
            "session_committed",
            reason=reason,
            cookie_names=[cookie.name for cookie in cookies],
        )
