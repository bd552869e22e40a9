"""
Unit tests for SettingsController: login state, username and appearance toggles.
"""

import pytest

from conftest import LOGIN_SET_COOKIES, settle
from src.campus.errors import AuthenticationError
from src.campus.preferences import IS_PIN, SELECTED_DARK_MODE, USERNAME
from src.campus.settings import SettingsController


@pytest.fixture
def controller(preferences, session, client):
    return SettingsController(preferences, session, client)


class TestSettingsController:
    def test_initial_state_from_preferences(self, controller):
        state = controller.state

        assert state.is_login is False
        assert state.username == ""
        assert state.selected_dark_mode == "system"

    @pytest.mark.asyncio
    async def test_login_sets_username_and_login_state(self, controller, preferences, fake_http):
        fake_http.add("login", status=302, set_cookies=LOGIN_SET_COOKIES)
        await controller.start()

        await controller.login("student", "secret")
        await settle()

        assert preferences.get(USERNAME) == "student"
        assert controller.state.is_login is True
        assert controller.state.username == "student"
        await controller.close()

    @pytest.mark.asyncio
    async def test_rejected_login_keeps_username(self, controller, preferences, fake_http):
        fake_http.add("login", status=200, body="")

        with pytest.raises(AuthenticationError):
            await controller.login("student", "wrong")

        assert preferences.get(USERNAME) == ""

    @pytest.mark.asyncio
    async def test_logout_clears_session_and_username(
        self, controller, preferences, session, fake_http
    ):
        fake_http.add("login", status=302, set_cookies=LOGIN_SET_COOKIES)
        await controller.start()
        await controller.login("student", "secret")

        await controller.logout()
        await settle()

        assert session.current_cookies() == []
        assert preferences.get(USERNAME) == ""
        assert controller.state.is_login is False
        await controller.close()

    @pytest.mark.asyncio
    async def test_clear_cookies_keeps_username(self, controller, preferences, session, fake_http):
        fake_http.add("login", status=302, set_cookies=LOGIN_SET_COOKIES)
        await controller.login("student", "secret")

        await controller.clear_cookies()

        assert session.is_logged_in is False
        assert preferences.get(USERNAME) == "student"

    @pytest.mark.asyncio
    async def test_appearance_changes_are_persisted(self, controller, preferences):
        await controller.start()

        await controller.change_selected_dark_mode("dark")
        await controller.change_is_pin(True)
        await controller.change_enable_system_color(True)
        await settle()

        assert preferences.get(SELECTED_DARK_MODE) == "dark"
        assert preferences.get(IS_PIN) is True
        assert controller.state.selected_dark_mode == "dark"
        assert controller.state.is_pin is True
        assert controller.state.enable_system_color is True
        await controller.close()
