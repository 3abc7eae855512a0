"""Shared fixtures: a scripted in-memory transport and session factories."""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest

from gdc_api.api import Api
from gdc_api.config import ApiConfig
from gdc_api.transport import TransportResponse

# Bound at import time so tests patching asyncio.sleep do not see these calls.
_yield_control = asyncio.sleep


@dataclass
class Call:
    """One request seen by the fake transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any

    @property
    def cookie(self) -> str:
        return self.headers.get("Cookie", "")


Responder = TransportResponse | Callable[[Call], TransportResponse]


def response(
    status_code: int = 200,
    body: Any = None,
    cookies: tuple[str, ...] = (),
    headers: tuple[tuple[str, str], ...] = (),
) -> TransportResponse:
    """Build a TransportResponse with a JSON body and Set-Cookie headers."""
    all_headers = [("set-cookie", cookie) for cookie in cookies]
    all_headers.extend(headers)
    body_text = "" if body is None else json.dumps(body)
    return TransportResponse(status_code=status_code, headers=all_headers, body_text=body_text)


class FakeTransport:
    """Transport answering from per-route scripts.

    Each route holds a queue of responders; the last one repeats forever.
    A responder is a TransportResponse or a callable taking the Call.
    Every send yields to the event loop once, like real I/O.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.closed = False
        self._routes: dict[tuple[str, str], list[Responder]] = {}

    def add(self, method: str, url: str, *responders: Responder) -> None:
        self._routes.setdefault((method, url), []).extend(responders)

    def calls_to(self, url: str, method: str | None = None) -> list[Call]:
        return [c for c in self.calls if c.url == url and (method is None or c.method == method)]

    async def send(self, method, url, headers, body=None) -> TransportResponse:
        call = Call(method=method, url=url, headers=dict(headers), body=body)
        self.calls.append(call)
        await _yield_control(0)

        queue = self._routes.get((method, url))
        if not queue:
            return response(404)
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        return responder(call) if callable(responder) else responder

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def config() -> ApiConfig:
    return ApiConfig(hostname="secure.example.com", domain="acme", poll_interval=0.0)


@pytest.fixture
def api(config: ApiConfig, transport: FakeTransport) -> Api:
    return Api(config, transport=transport)


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Record asyncio.sleep delays instead of waiting."""
    delays: list[float] = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await _yield_control(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
