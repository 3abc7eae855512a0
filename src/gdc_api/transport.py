"""HTTP transport used by the request pipeline.

The pipeline depends only on the :class:`Transport` protocol: one request in,
status code, headers and body text out. :class:`HttpxTransport` is the
default implementation on top of ``httpx.AsyncClient``.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from .config import ApiConfig

logger = structlog.get_logger(__name__)


@dataclass
class TransportResponse:
    """Raw outcome of one HTTP exchange."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body_text: str = ""

    def header_values(self, name: str) -> list[str]:
        """Return every value of a header, in order (case-insensitive)."""
        name = name.lower()
        return [value for key, value in self.headers if key.lower() == name]

    def header(self, name: str) -> str | None:
        """Return the first value of a header, or None."""
        values = self.header_values(name)
        return values[0] if values else None


class Transport(Protocol):
    """Performs a single HTTP request."""

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
    ) -> TransportResponse: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Authentication cookies are owned by the session and sent as explicit
    ``Cookie`` headers, so the client's cookie jar is kept empty.

    Can be used as an async context manager for automatic cleanup.
    """

    def __init__(
        self,
        config: ApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            config: Connection settings (base URL, timeout, TLS verification).
            transport: Optional low-level httpx transport, e.g. an
                ``httpx.ASGITransport`` in tests.
        """
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            verify=config.verify_ssl,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if open."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
    ) -> TransportResponse:
        """Send one request and return its raw outcome.

        Raises:
            httpx.HTTPError: If the request cannot be completed.
        """
        self._client.cookies.clear()
        response = await self._client.request(
            method,
            url,
            headers=headers,
            json=body,
        )
        return TransportResponse(
            status_code=response.status_code,
            headers=list(response.headers.multi_items()),
            body_text=response.text,
        )
