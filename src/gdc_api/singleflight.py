"""Single-flight coordination for asynchronous operations.

Provides a generic guard that lets at most one call of an expensive
operation be in flight; concurrent callers share its outcome instead of
issuing their own.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """At most one in-flight call; every concurrent caller awaits the same one.

    The slot is released when the call settles (success or failure), before
    any waiter resumes, so the next caller after settlement starts a fresh
    call. Cancelling one waiter leaves the call and the other waiters untouched.
    """

    def __init__(self, name: str):
        """Initialize the guard.

        Args:
            name: Operation name used in log events.
        """
        self._name = name
        self._pending: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        """Whether a call is currently running."""
        return self._pending is not None

    async def run(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run func, or join the call already in flight.

        Args:
            func: Zero-argument coroutine function performing the operation.

        Returns:
            The result of the in-flight call.

        Raises:
            Exception: Whatever the in-flight call raised; every waiter
                observes the same exception.
        """
        if self._pending is None:
            logger.debug("Starting single-flight call", operation=self._name)
            self._pending = asyncio.ensure_future(self._settle(func))
        else:
            logger.debug("Joining in-flight call", operation=self._name)
        return await asyncio.shield(self._pending)

    async def join(self) -> None:
        """Wait until the in-flight call settles, ignoring its outcome."""
        if self._pending is not None:
            await asyncio.wait([self._pending])

    async def _settle(self, func: Callable[[], Awaitable[T]]) -> T:
        try:
            return await func()
        finally:
            self._pending = None
