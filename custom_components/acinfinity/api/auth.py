"""
Authentication session for the AC Infinity API.

Responsible for:
- Logging in and holding the token (LoggedOut -> LoggedIn -> LoggedOut)
- Building the two authorization header variants used by the API
- Owning the pooled aiohttp session shared by the poll and command paths
"""
from __future__ import annotations

import enum
import logging
import time

import aiohttp

from custom_components.acinfinity.const import (
    API_URL_LOGIN,
    APP_VERSION,
    CODE_INVALID_CREDENTIALS,
    CONTENT_TYPE,
    DEFAULT_HOST,
    MIN_VERSION,
    PASSWORD_MAX_LENGTH,
    PHONE_TYPE,
    USER_AGENT,
)
from custom_components.acinfinity.exceptions import (
    InvalidCredentials,
    NotAuthenticated,
    RequestRejected,
)
from custom_components.acinfinity.requests import make_request

_LOGGER = logging.getLogger(__name__)


class HeaderVariant(enum.Enum):
    BASIC = "basic"
    WITH_VERSION_INFO = "with_version_info"


class AuthSession:
    """
    Login state and transport for one AC Infinity account.

    The token is the only state shared between the poll and command paths.
    A request made with a token that was just invalidated simply fails; this
    class never retries on its own.
    """

    def __init__(
        self,
        email: str,
        password: str,
        host: str = DEFAULT_HOST,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._email = email
        self._password = password
        self._host = host.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._token: str | None = None
        self.issued_at: float | None = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def session(self) -> aiohttp.ClientSession:
        """Return the pooled session, creating it on first use."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit_per_host=1)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT, "Content-Type": CONTENT_TYPE},
            )
            self._owns_session = True
        return self._session

    def url(self, path: str) -> str:
        return self._host + path

    async def post(self, path: str, headers: dict, data: dict | None = None) -> dict:
        """POST to path and return the decoded body (application code already checked)."""
        return await make_request(self.session, self.url(path), headers, data)

    # ------------------------------------------------------------------
    # Login state
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """
        Obtain a token. All-or-nothing: on failure the session stays logged out.

        Raises InvalidCredentials for code 10001, RequestRejected for any other
        rejection and CannotConnect when the API is unreachable.
        """
        data = {
            "appEmail": self._email,
            # The API does not accept passwords longer than 25 characters.
            # "appPasswordl" is the field name the API expects.
            "appPasswordl": self._password[:PASSWORD_MAX_LENGTH],
        }
        self._token = None
        try:
            body = await self.post(API_URL_LOGIN, {}, data)
        except RequestRejected as exc:
            if exc.code == CODE_INVALID_CREDENTIALS:
                _LOGGER.error("AC Infinity rejected the configured credentials")
                raise InvalidCredentials() from exc
            raise

        try:
            token = str(body["data"]["appId"])
        except (KeyError, TypeError) as exc:
            raise RequestRejected(body.get("code"), body) from exc

        self._token = token
        self.issued_at = time.time()
        _LOGGER.debug("Successfully logged in to AC Infinity API")

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def token(self) -> str:
        if self._token is None:
            raise NotAuthenticated()
        return self._token

    def auth_headers(self, variant: HeaderVariant = HeaderVariant.WITH_VERSION_INFO) -> dict:
        """
        Build the authorization headers for an authenticated call.

        :param variant: BASIC carries only the token; WITH_VERSION_INFO adds
            the app identification fields newer endpoints expect.
        :raises NotAuthenticated: before a successful login.
        """
        headers = {"token": self.token}
        if variant is HeaderVariant.WITH_VERSION_INFO:
            headers.update({
                "phoneType": PHONE_TYPE,
                "appVersion": APP_VERSION,
                "minversion": MIN_VERSION,
            })
        return headers

    def invalidate(self) -> None:
        """Drop the token. Safe to call any number of times."""
        if self._token is not None:
            _LOGGER.debug("Invalidating AC Infinity session token")
        self._token = None
        self.issued_at = None

    async def close(self) -> None:
        """Invalidate the token and release pooled connections."""
        self.invalidate()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
