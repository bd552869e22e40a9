"""HTTP gateway to the portal.

Every request carries the SessionStore cookies, redirects are never
followed, and every response's cookies are offered to
SessionStore.commit_if_login(). Transport faults (refused connection,
timeout, DNS or TLS failure) are not raised: they come back as one
synthetic response, status 502 with an empty body and the message
"Failed to connect to Internet".
"""

import asyncio
from http.cookiejar import DefaultCookiePolicy
from urllib.parse import urljoin

import requests

from src.campus.config import PortalConfig
from src.campus.logging import get_logger
from src.campus.models import (
    TRANSPORT_FAILURE_MESSAGE,
    TRANSPORT_FAILURE_STATUS,
    Cookie,
    PortalRequest,
    PortalResponse,
)
from src.campus.session import SessionStore

log = get_logger(__name__)


class _RejectAllCookiesPolicy(DefaultCookiePolicy):
    """Keeps the requests.Session jar empty; SessionStore is the only cookie owner."""

    def set_ok(self, cookie, request):
        return False

    def return_ok(self, cookie, request):
        return False


def transport_failure(url: str) -> PortalResponse:
    return PortalResponse(
        url=url,
        status_code=TRANSPORT_FAILURE_STATUS,
        message=TRANSPORT_FAILURE_MESSAGE,
        text="",
    )


def parse_set_cookie(header: str) -> Cookie | None:
    """Parse one Set-Cookie header value.

    Returns:
        Cookie, or None if the header has no name=value pair.
    """
    parts = [part.strip() for part in header.split(";")]
    name, sep, value = parts[0].partition("=")
    name = name.strip()
    if not sep or not name:
        return None

    attrs: dict[str, str] = {}
    flags: set[str] = set()
    for part in parts[1:]:
        if not part:
            continue
        key, has_value, attr_value = part.partition("=")
        key = key.strip().lower()
        if has_value:
            attrs[key] = attr_value.strip()
        else:
            flags.add(key)

    max_age: int | None = None
    if "max-age" in attrs:
        try:
            max_age = int(attrs["max-age"])
        except ValueError:
            max_age = None

    return Cookie(
        name=name,
        value=value.strip(),
        domain=attrs.get("domain"),
        path=attrs.get("path"),
        max_age=max_age,
        expires=attrs.get("expires"),
        secure="secure" in flags,
        http_only="httponly" in flags,
    )


def _set_cookie_headers(response: requests.Response) -> list[str]:
    # The raw urllib3 headers keep repeated Set-Cookie lines apart
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    value = response.headers.get("Set-Cookie")
    return [value] if value else []


class HttpGateway:
    """Sends PortalRequests with the session cookies attached."""

    def __init__(
        self,
        session: SessionStore,
        config: PortalConfig,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = config.base_url
        self._session = session
        self._timeout = config.request_timeout_seconds
        self._overall_timeout = config.overall_timeout_seconds
        self._http = http if http is not None else requests.Session()
        self._http.cookies.set_policy(_RejectAllCookiesPolicy())

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path)

    async def send(self, request: PortalRequest) -> PortalResponse:
        """Send a request; never raises for transport faults.

        Args:
            request: Method, path relative to base_url, query params and form data.

        Returns:
            PortalResponse, or the synthetic 502 response if no response was obtained.
        """
        url = self.url_for(request.path)
        headers: dict[str, str] = {}
        cookie_header = self._session.cookie_header()
        if cookie_header:
            headers["Cookie"] = cookie_header

        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(
                    self._http.request,
                    request.method,
                    url,
                    params=request.params,
                    data=request.data,
                    headers=headers,
                    allow_redirects=False,
                    timeout=self._timeout,
                ),
                timeout=self._overall_timeout,
            )
        except (requests.RequestException, asyncio.TimeoutError) as e:
            log.warning(
                "gateway_transport_failed",
                method=request.method,
                url=url,
                error=str(e),
                type=type(e).__name__,
            )
            return transport_failure(url)

        request_url = raw.request.url if raw.request is not None else url
        cookies = [
            cookie
            for cookie in (parse_set_cookie(h) for h in _set_cookie_headers(raw))
            if cookie is not None
        ]
        response = PortalResponse(
            url=request_url,
            status_code=raw.status_code,
            message=raw.reason or "",
            text=raw.text,
            cookies=cookies,
        )

        await self._session.commit_if_login(response.url, response.cookies)

        log.debug(
            "gateway_response",
            method=request.method,
            url=request_url,
            status=response.status_code,
            set_cookie_names=[cookie.name for cookie in cookies],
        )
        return response
