"""Authenticated session and request pipeline.

:class:`Api` owns the two authentication tokens of a session and exposes a
single entry point, :meth:`Api.request`, that hides the token protocol:

- the long-lived session token (SST) comes from the login response;
- the short-lived temporary token (TT) comes from the token endpoint and is
  renewed transparently when a request answers HTTP 401;
- HTTP 202 answers are polled until the server reports a final status;
- failing answers are turned into :mod:`gdc_api.errors` exceptions.

Concurrent 401 answers share a single renewal call, see
:class:`~gdc_api.singleflight.SingleFlight`.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import pydantic
import structlog

from . import config as config_module
from .config import ApiConfig
from .errors import (
    AuthenticationError,
    ConfigurationError,
    HttpError,
    ServerError,
    TokenRenewalError,
)
from .singleflight import SingleFlight
from .transport import HttpxTransport, Transport, TransportResponse
from .types import AsyncTaskEnvelope, ErrorPayload, LoginResult

if TYPE_CHECKING:
    from .resources.user import User

logger = structlog.get_logger(__name__)

LOGIN_PATH = "/gdc/account/login"
TOKEN_PATH = "/gdc/account/token"
PROFILE_PATH = "/gdc/account/profile"

SST_COOKIE = "GDCAuthSST"
TT_COOKIE = "GDCAuthTT"
REQUEST_ID_HEADER = "X-GDC-Request"

SST_REGEX = re.compile(rf"{SST_COOKIE}=([^; ]+)")
TT_REGEX = re.compile(rf"{TT_COOKIE}=([^; ]+)")

HTTP_ACCEPTED = 202
HTTP_UNAUTHORIZED = 401
HTTP_BAD_REQUEST = 400


@dataclass
class RequestStats:
    """Counters of pipeline activity since the session was created."""

    requests: int = 0
    responses: dict[int, int] = field(default_factory=dict)
    token_renewals: int = 0
    polls: int = 0
    errors: int = 0

    def record_response(self, status_code: int) -> None:
        self.responses[status_code] = self.responses.get(status_code, 0) + 1


def extract_cookie(response: TransportResponse, pattern: re.Pattern[str]) -> str | None:
    """Find a cookie value in the response's ``Set-Cookie`` headers."""
    for cookie in response.header_values("set-cookie"):
        if match := pattern.search(cookie):
            return match.group(1)
    return None


def parse_body(body_text: str) -> Any:
    """Parse a response body as JSON, tolerating anything else as ``{}``."""
    if not body_text:
        return {}
    try:
        return json.loads(body_text)
    except ValueError:
        return {}


def _strip_path(uri: str) -> str:
    return httpx.URL(uri).path.rstrip("/")


def is_login_uri(uri: str) -> bool:
    return _strip_path(uri) == LOGIN_PATH


def is_token_uri(uri: str) -> bool:
    return _strip_path(uri) == TOKEN_PATH


class Api:
    """Session with the analytics platform API.

    Holds the session (SST) and temporary (TT) tokens and sends every
    authenticated request through :meth:`request`. Can be used as an async
    context manager, which closes the transport on exit.

    The token pair is shared by all requests of the session. It is written
    only by :meth:`authenticate`, :meth:`logout` and the single-flight
    renewal routine.
    """

    def __init__(self, config: ApiConfig, transport: Transport | None = None):
        """Initialize the session.

        Args:
            config: Validated connection settings.
            transport: HTTP transport; an :class:`HttpxTransport` bound to
                ``config`` is created when omitted.

        Raises:
            ConfigurationError: If config is not an ApiConfig.
        """
        if not isinstance(config, ApiConfig):
            msg = f"Expected ApiConfig, got {type(config).__name__}"
            raise ConfigurationError(msg)

        self.config = config
        self.transport: Transport = transport or HttpxTransport(config)
        self.stats = RequestStats()

        self._session_token: str | None = None
        self._temporary_token: str | None = None
        self._profile_uri: str | None = None
        self._last_request_id: str | None = None
        self._renewal: SingleFlight[str] = SingleFlight("token renewal")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport."""
        await self.transport.aclose()

    @property
    def hostname(self) -> str:
        return self.config.hostname

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def domain(self) -> str | None:
        return self.config.domain

    @property
    def session_token(self) -> str | None:
        """Long-lived session token (SST); set means logged in."""
        return self._session_token

    @session_token.setter
    def session_token(self, value: str | None) -> None:
        self._session_token = value or None
        if self._session_token is None:
            # A temporary token is never valid without a session token.
            self._temporary_token = None

    @property
    def temporary_token(self) -> str | None:
        """Short-lived temporary token (TT)."""
        return self._temporary_token

    @property
    def logged_in(self) -> bool:
        return self._session_token is not None

    @property
    def profile_uri(self) -> str | None:
        """Profile URI of the logged in account."""
        return self._profile_uri

    @property
    def last_request_id(self) -> str | None:
        """Server request id of the most recent response, for support tickets."""
        return self._last_request_id

    def login(self, username: str, password: str) -> "User":
        """Log in and load the account.

        Returns:
            A sequenced :class:`~gdc_api.resources.user.User`; await it to
            get the loaded user.
        """
        from .resources.user import User

        return User(self).login(username, password)

    def register(
        self,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> "User":
        """Register a new user in the configured domain.

        Returns:
            A sequenced :class:`~gdc_api.resources.user.User`.
        """
        from .resources.user import User

        user = User(self)
        user.first_name = first_name
        user.last_name = last_name
        return user.register(username, password)

    async def authenticate(self, username: str, password: str) -> str:
        """Log in with credentials and store the session token.

        Any cached temporary token is discarded: it belongs to the previous
        session.

        Returns:
            Profile URI of the authenticated account.

        Raises:
            AuthenticationError: If the server rejects the credentials or
                answers without a session cookie.
        """
        self._temporary_token = None
        payload = {
            "postUserLogin": {
                "captcha": "",
                "login": username,
                "password": password,
                "remember": "0",
                "verifyCaptcha": "",
            },
        }
        try:
            response, body = await self._request(LOGIN_PATH, "POST", payload)
        except HttpError as exc:
            self.stats.errors += 1
            raise AuthenticationError(str(exc)) from exc

        sst = extract_cookie(response, SST_REGEX)
        if not sst:
            self.stats.errors += 1
            msg = f"{SST_COOKIE} cookie not found in login response"
            raise AuthenticationError(msg)

        try:
            profile_uri = LoginResult.model_validate(body).userLogin.profile
        except pydantic.ValidationError as exc:
            self.stats.errors += 1
            msg = "Login response does not name the account profile"
            raise AuthenticationError(msg) from exc

        self.session_token = sst
        self._temporary_token = None
        self._profile_uri = profile_uri
        logger.info("Logged in", username=username, profile=profile_uri)
        return profile_uri

    async def logout(self) -> None:
        """End the session on the server and forget both tokens."""
        try:
            if self.logged_in and self._profile_uri:
                logout_uri = self._profile_uri.replace(PROFILE_PATH, LOGIN_PATH, 1)
                await self.request(logout_uri, "DELETE")
                logger.info("Logged out", profile=self._profile_uri)
        finally:
            self.session_token = None
            self._profile_uri = None

    async def renew_token(self) -> str:
        """Fetch a new temporary token.

        Concurrent callers share one call to the token endpoint and observe
        the same outcome.

        Raises:
            TokenRenewalError: If the token endpoint fails or sets no
                temporary token cookie.
        """
        return await self._renewal.run(self._fetch_temporary_token)

    async def _fetch_temporary_token(self) -> str:
        self.stats.token_renewals += 1
        logger.debug("Renewing temporary token")
        try:
            response, _ = await self._request(TOKEN_PATH)
        except HttpError as exc:
            self.stats.errors += 1
            raise TokenRenewalError(str(exc)) from exc

        tt = extract_cookie(response, TT_REGEX)
        if not tt:
            self.stats.errors += 1
            msg = f"{TT_COOKIE} cookie not found in token response"
            raise TokenRenewalError(msg)

        self._temporary_token = tt
        logger.debug("Temporary token renewed")
        return tt

    async def request(
        self,
        uri: str,
        method: str = "GET",
        data: Any = None,
        *,
        query: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request and return the parsed response body.

        HTTP 401 triggers one token renewal and one retry. HTTP 202 is polled
        (GET on the advertised poll link, or the same URI) every
        ``poll_interval`` seconds until another status arrives.

        Args:
            uri: Request path (or absolute URL).
            method: HTTP method.
            data: JSON-serializable request payload.
            query: Optional query parameters.

        Returns:
            Parsed JSON body; ``{}`` for empty or non-JSON bodies.

        Raises:
            ServerError: If the server answers a structured error.
            HttpError: If the server answers another failing status.
            TokenRenewalError: If a needed token renewal fails.
            httpx.HTTPError: If the transport fails.
        """
        try:
            _, body = await self._request(uri, method, data, query=query)
        except HttpError:
            self.stats.errors += 1
            raise
        return body

    async def _request(
        self,
        uri: str,
        method: str = "GET",
        data: Any = None,
        *,
        query: dict[str, Any] | None = None,
    ) -> tuple[TransportResponse, Any]:
        method = method.upper()
        renewed = False

        while True:
            if not is_token_uri(uri):
                # Requests sent during a renewal would carry the stale token.
                await self._renewal.join()

            if is_login_uri(uri) and method == "POST":
                self._temporary_token = None

            response, body = await self._exchange(uri, method, data, query)
            status = response.status_code

            if status == HTTP_UNAUTHORIZED and not renewed and self._renews_on_401(uri):
                await self.renew_token()
                renewed = True
                continue

            if status == HTTP_ACCEPTED:
                poll_uri = _poll_uri(body)
                if poll_uri:
                    uri, query = poll_uri, None
                method, data = "GET", None
                renewed = False
                self.stats.polls += 1
                logger.debug("Polling asynchronous task", uri=uri)
                await asyncio.sleep(self.config.poll_interval)
                continue

            if status >= HTTP_BAD_REQUEST:
                raise build_error(uri, status, body)

            return response, body

    async def _exchange(
        self,
        uri: str,
        method: str,
        data: Any,
        query: dict[str, Any] | None,
    ) -> tuple[TransportResponse, Any]:
        url = uri
        if query:
            url = f"{uri}?{httpx.QueryParams(query)}"

        headers = {}
        if cookie := self._cookie_header():
            headers["Cookie"] = cookie

        if self.config.debug:
            logger.info("http request", method=method, path=url)
        self.stats.requests += 1
        response = await self.transport.send(method, url, headers, data)
        self.stats.record_response(response.status_code)
        if self.config.debug:
            logger.info(
                "http response",
                method=method,
                path=url,
                status=response.status_code,
            )

        if request_id := response.header(REQUEST_ID_HEADER):
            self._last_request_id = request_id
        return response, parse_body(response.body_text)

    def _cookie_header(self) -> str:
        cookies = []
        if self._session_token:
            cookies.append(f"{SST_COOKIE}={self._session_token}")
        if self._temporary_token:
            cookies.append(f"{TT_COOKIE}={self._temporary_token}")
        return "; ".join(cookies)

    @staticmethod
    def _renews_on_401(uri: str) -> bool:
        return not (is_token_uri(uri) or is_login_uri(uri))


def _poll_uri(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    try:
        return AsyncTaskEnvelope.model_validate(body).poll_uri
    except pydantic.ValidationError:
        return None


def build_error(uri: str, status_code: int, body: Any) -> HttpError:
    """Build the exception for a failing response.

    The login endpoint returns its error fields at the top level; every
    other endpoint nests them under ``error``.
    """
    error_data = body if is_login_uri(uri) else None
    if error_data is None and isinstance(body, dict):
        error_data = body.get("error")

    if isinstance(error_data, dict):
        try:
            error = ErrorPayload.model_validate(error_data)
        except pydantic.ValidationError:
            error = None
        if error is not None:
            return ServerError(status_code, error.message, error.parameters)
    return HttpError(status_code)


def create_api(
    config_path: str | None = None,
    transport: Transport | None = None,
) -> Api:
    """Create a session from a JSON configuration file and set up logging.

    Uses the ``GDC_API_CONFIG_PATH`` environment variable when no path is
    given.
    """
    config = config_module.load_config(config_path)
    config_module.configure_logging(config.log_level)
    logger.info("Created API session", base_url=config.base_url)
    return Api(config, transport=transport)
