"""Shared fixtures: in-memory preferences and a requests.Session that never hits the network."""

import asyncio
import json
import time
from types import SimpleNamespace
from typing import Any

import pytest
import requests

from src.campus.api import PortalClient
from src.campus.config import PortalConfig
from src.campus.gateway import HttpGateway
from src.campus.preferences import MemoryPreferenceStore, PreferenceBus, UserPreferences
from src.campus.session import SessionStore

BASE_URL = "https://jw.test.edu.cn/"
LOGIN_URL = BASE_URL + "login"

# What the portal sends back on a successful login: deletion cookie + new rememberMe
LOGIN_SET_COOKIES = [
    "rememberMe=deleteMe; Path=/; Max-Age=0; Expires=Sun, 17-Sep-2023 10:00:00 GMT",
    "rememberMe=abc123; Path=/; Max-Age=31536000; HttpOnly",
    "JSESSIONID=xyz789; Path=/; HttpOnly",
]


class FakeHeaders:
    """Stands in for urllib3's HTTPHeaderDict (only getlist is used)."""

    def __init__(self, set_cookies: list[str]) -> None:
        self._set_cookies = list(set_cookies)

    def getlist(self, name: str) -> list[str]:
        return list(self._set_cookies) if name.lower() == "set-cookie" else []


def make_response(
    url: str,
    status: int = 200,
    body: str = "",
    set_cookies: list[str] | None = None,
    reason: str = "OK",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.url = url
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    response.raw = SimpleNamespace(headers=FakeHeaders(set_cookies or []))
    return response


class FakeHttp(requests.Session):
    """requests.Session whose request() answers from registered routes."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[SimpleNamespace] = []
        self._routes: dict[str, Any] = {}

    def add(
        self,
        path: str,
        body: Any = "",
        status: int = 200,
        set_cookies: list[str] | None = None,
    ) -> None:
        if not isinstance(body, str):
            body = json.dumps(body, ensure_ascii=False)
        self._routes[BASE_URL + path] = (status, body, set_cookies)

    def fail(self, path: str, error: Exception) -> None:
        self._routes[BASE_URL + path] = error

    def stall(self, path: str, seconds: float) -> None:
        self._routes[BASE_URL + path] = seconds

    def request(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        route = self._routes.get(url)
        if route is None:
            return make_response(url, status=404, reason="Not Found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, float):
            time.sleep(route)
            return make_response(url)
        status, body, set_cookies = route
        return make_response(url, status=status, body=body, set_cookies=set_cookies)


async def settle(rounds: int = 5) -> None:
    """Let pending tasks (stream fan-out, preference upstreams) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def config() -> PortalConfig:
    return PortalConfig(
        _env_file=None,
        base_url=BASE_URL,
        state_dir="unused",
        overall_timeout_seconds=5.0,
        login_attempts=2,
        login_retry_wait_seconds=0,
        share_grace_seconds=0.05,
    )


@pytest.fixture
def store() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture
def preferences(store, config) -> UserPreferences:
    return UserPreferences(PreferenceBus(store, grace_seconds=config.share_grace_seconds))


@pytest.fixture
def session(preferences, config) -> SessionStore:
    return SessionStore(preferences, config.login_url)


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def gateway(session, config, fake_http) -> HttpGateway:
    return HttpGateway(session, config, http=fake_http)


@pytest.fixture
def client(gateway, config) -> PortalClient:
    return PortalClient(gateway, config)
