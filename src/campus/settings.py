"""Account and appearance settings backed by the preference bus."""

import asyncio
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from src.campus.api import PortalClient
from src.campus.logging import get_logger
from src.campus.preferences import (
    ENABLE_SYSTEM_COLOR,
    IS_PIN,
    SELECTED_DARK_MODE,
    USERNAME,
    UserPreferences,
)
from src.campus.session import SessionStore, is_login_cookie_set
from src.campus.streams import StateStream, Subscription

logger = get_logger(__name__)


class SettingsState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_login: bool = False
    username: str = USERNAME.default
    enable_system_color: bool = ENABLE_SYSTEM_COLOR.default
    selected_dark_mode: str = SELECTED_DARK_MODE.default
    is_pin: bool = IS_PIN.default


class SettingsController:
    """Keeps SettingsState current and applies account/appearance changes."""

    def __init__(
        self,
        preferences: UserPreferences,
        session: SessionStore,
        client: PortalClient,
    ) -> None:
        self._preferences = preferences
        self._session = session
        self._client = client
        self._state = StateStream(
            SettingsState(
                is_login=session.is_logged_in,
                username=preferences.get(USERNAME),
                enable_system_color=preferences.get(ENABLE_SYSTEM_COLOR),
                selected_dark_mode=preferences.get(SELECTED_DARK_MODE),
                is_pin=preferences.get(IS_PIN),
            )
        )
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def state(self) -> SettingsState:
        return self._state.value

    def observe(self) -> Subscription[SettingsState]:
        return self._state.subscribe()

    def _update(self, **changes: Any) -> None:
        self._state.update(lambda state: state.model_copy(update=changes))

    async def start(self) -> None:
        if self._tasks:
            return
        sources: list[tuple[Subscription[Any], Callable[[Any], None]]] = [
            (self._preferences.shared(USERNAME).subscribe(), lambda v: self._update(username=v)),
            (
                self._preferences.shared(ENABLE_SYSTEM_COLOR).subscribe(),
                lambda v: self._update(enable_system_color=bool(v)),
            ),
            (
                self._preferences.shared(SELECTED_DARK_MODE).subscribe(),
                lambda v: self._update(selected_dark_mode=v),
            ),
            (self._preferences.shared(IS_PIN).subscribe(), lambda v: self._update(is_pin=bool(v))),
            (
                self._session.observe_cookies(),
                lambda cookies: self._update(is_login=is_login_cookie_set(cookies)),
            ),
        ]
        self._tasks = [asyncio.create_task(self._mirror(sub, apply)) for sub, apply in sources]

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    @staticmethod
    async def _mirror(subscription: Subscription[Any], apply: Callable[[Any], None]) -> None:
        async with subscription as values:
            async for value in values:
                apply(value)

    async def login(self, username: str, password: str) -> None:
        """Log in and remember the username.

        Raises:
            AuthenticationError: If the portal rejected the credentials.
            TransientError: If the portal could not be reached.
        """
        await self._client.login(username, password)
        await self._preferences.change(USERNAME, username)

    async def logout(self) -> None:
        await self._session.clear()
        await self._preferences.change(USERNAME, USERNAME.default)
        logger.info("logged_out")

    async def clear_cookies(self) -> None:
        """Drop the session but keep the username, for debugging the login flow."""
        await self._session.clear()
        logger.info("cookies_cleared")

    async def change_enable_system_color(self, enable: bool) -> None:
        await self._preferences.change(ENABLE_SYSTEM_COLOR, enable)

    async def change_selected_dark_mode(self, dark_mode: str) -> None:
        await self._preferences.change(SELECTED_DARK_MODE, dark_mode)

    async def change_is_pin(self, is_pin: bool) -> None:
        self._update(is_pin=is_pin)
        await self._preferences.change(IS_PIN, is_pin)
