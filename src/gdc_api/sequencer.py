"""Ordered execution of asynchronous steps per owner object.

A :class:`Sequenced` object keeps one pending chain. Methods decorated with
:func:`chained` do not run immediately: each call appends a step to the
chain and returns the owner, so calls can be written fluently::

    dashboard = await Dashboard(api, project).load(uri).set_locked(True)

Steps on the same owner run strictly in call order and never overlap.
Steps on different owners are independent and may run concurrently.

Failure policy: when a step raises, every step queued after it is skipped
and the chain stays rejected. Appending to a rejected chain does not heal
it; call :meth:`Sequenced.reset_chain` to start over.

Cancelling a caller of :meth:`Sequenced.wait` or :meth:`Sequenced.settle`
only stops that caller; the queued steps keep running.

Chained methods must be called while an event loop is running.
"""

import asyncio
import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from .errors import SequenceDeadlockError

logger = structlog.get_logger(__name__)

S = TypeVar("S", bound="Sequenced")

Callback = Callable[[Any], Any]


class Sequenced:
    """Base class for objects whose mutating methods run as an ordered chain."""

    def __init__(self) -> None:
        # None stands for an already-resolved chain.
        self._chain: asyncio.Task[Any] | None = None

    def reset_chain(self: S) -> S:
        """Drop the current chain, rejected or not, and start a resolved one."""
        self._chain = None
        return self

    def _enqueue(self, step: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        previous = self._chain
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_step(previous, step, args, kwargs))
        task.add_done_callback(_retrieve_exception)
        self._chain = task

    async def _run_step(
        self,
        previous: asyncio.Task[Any] | None,
        step: Callable[..., Any],
        args: tuple,
        kwargs: dict,
    ) -> Any:
        if previous is not None:
            # Re-raises the earlier failure, which skips this step.
            await asyncio.shield(previous)

        result = step(self, *args, **kwargs)
        if result is self:
            msg = (
                f"Chained step {step.__qualname__} returned its own owner; "
                "awaiting it would wait on itself"
            )
            raise SequenceDeadlockError(msg)
        if isinstance(result, Sequenced):
            return await result.wait()
        if inspect.isawaitable(result):
            result = await result
            if result is self:
                msg = f"Chained step {step.__qualname__} resolved with its own owner"
                raise SequenceDeadlockError(msg)
        return result

    def settle(
        self,
        on_success: Callback | None = None,
        on_failure: Callback | None = None,
    ) -> "asyncio.Task[Any]":
        """Run callbacks once the current chain position settles.

        Callbacks may be plain functions or coroutine functions. The
        success callback receives the result of the last step, the failure
        callback the exception. A callback may return the owner itself
        without causing a deadlock.

        Args:
            on_success: Called with the chain result on success.
            on_failure: Called with the exception on failure. Without it,
                the returned task fails with the chain's exception.

        Returns:
            Task resolving to the callback's return value (or the chain
            result when the matching callback is omitted).
        """
        chain = self._chain
        return asyncio.get_running_loop().create_task(
            _settle(chain, on_success, on_failure),
        )

    async def wait(self: S) -> S:
        """Wait until every queued step has run and return the owner.

        Raises:
            Exception: The first failure of the chain.
        """
        while True:
            chain = self._chain
            if chain is None:
                return self
            await asyncio.shield(chain)
            if chain is self._chain:
                return self

    def __await__(self):
        return self.wait().__await__()


def _retrieve_exception(task: "asyncio.Task[Any]") -> None:
    # Failures surface through wait() and settle() only.
    if not task.cancelled():
        task.exception()


async def _settle(
    chain: "asyncio.Task[Any] | None",
    on_success: Callback | None,
    on_failure: Callback | None,
) -> Any:
    try:
        value = await asyncio.shield(chain) if chain is not None else None
    except Exception as exc:
        if on_failure is None:
            raise
        return await _call(on_failure, exc)
    if on_success is None:
        return value
    return await _call(on_success, value)


async def _call(callback: Callback, argument: Any) -> Any:
    result = callback(argument)
    # Only coroutines and futures are awaited: a callback returning a
    # Sequenced owner hands the object back as a plain value.
    if inspect.iscoroutine(result) or isinstance(result, asyncio.Future):
        result = await result
    return result


def chained(method: Callable[..., Awaitable[Any] | Any]) -> Callable[..., Any]:
    """Turn a method into a chained step of its owner's sequence.

    The decorated method is appended to the owner's chain and the owner is
    returned synchronously. The method body runs only after every step
    queued before it has succeeded.
    """

    @functools.wraps(method)
    def wrapper(self: S, *args: Any, **kwargs: Any) -> S:
        self._enqueue(method, args, kwargs)
        return self

    return wrapper
