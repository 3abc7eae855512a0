"""Tests for SingleFlight behaviours not observable through Api.request.

Slot release after success and failure, exception sharing among joined
callers and join() ignoring the outcome are exercised here directly; the
token renewal scenarios live in test_api.py.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from gdc_api.singleflight import SingleFlight

# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_single_caller_runs_func():
    func = AsyncMock(return_value="token")
    flight = SingleFlight("test")

    actual = await flight.run(func)

    assert actual == "token"
    func.assert_awaited_once()


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_call():
    release = asyncio.Event()
    calls = 0

    async def func():
        nonlocal calls
        calls += 1
        await release.wait()
        return calls

    flight = SingleFlight("test")
    waiters = [asyncio.ensure_future(flight.run(func)) for _ in range(4)]
    await asyncio.sleep(0)
    assert flight.in_flight

    release.set()
    results = await asyncio.gather(*waiters)

    assert results == [1, 1, 1, 1]
    assert calls == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_failure():
    release = asyncio.Event()
    func = AsyncMock(side_effect=ValueError("renewal failed"))

    async def gated():
        await release.wait()
        return await func()

    flight = SingleFlight("test")
    waiters = [asyncio.ensure_future(flight.run(gated)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, ValueError) for r in results)
    func.assert_awaited_once()


# ---------------------------------------------------------------------------
# Slot release
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_slot_released_after_success():
    func = AsyncMock(side_effect=["first", "second"])
    flight = SingleFlight("test")

    first = await flight.run(func)
    second = await flight.run(func)

    assert (first, second) == ("first", "second")
    assert func.await_count == 2
    assert not flight.in_flight


@pytest.mark.asyncio
async def test_slot_released_after_failure():
    func = AsyncMock(side_effect=[RuntimeError("down"), "ok"])
    flight = SingleFlight("test")

    with pytest.raises(RuntimeError, match="down"):
        await flight.run(func)
    assert not flight.in_flight

    assert await flight.run(func) == "ok"


# ---------------------------------------------------------------------------
# join()
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_join_without_call_returns_immediately():
    flight = SingleFlight("test")

    await asyncio.wait_for(flight.join(), timeout=1)


@pytest.mark.asyncio
async def test_join_waits_for_call_and_ignores_failure():
    release = asyncio.Event()

    async def func():
        await release.wait()
        raise RuntimeError("ignored by join")

    flight = SingleFlight("test")
    runner = asyncio.ensure_future(flight.run(func))
    await asyncio.sleep(0)
    joiner = asyncio.ensure_future(flight.join())
    await asyncio.sleep(0)
    assert not joiner.done()

    release.set()
    await joiner

    assert not flight.in_flight
    with pytest.raises(RuntimeError):
        await runner


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_call_running():
    """Cancelling the caller that started the call does not abort it for others."""
    release = asyncio.Event()
    func = AsyncMock(return_value="token")

    async def gated():
        await release.wait()
        return await func()

    flight = SingleFlight("test")
    starter = asyncio.ensure_future(flight.run(gated))
    joiner = asyncio.ensure_future(flight.run(gated))
    await asyncio.sleep(0)

    starter.cancel()
    await asyncio.sleep(0)
    assert flight.in_flight
    release.set()

    assert await joiner == "token"
    assert starter.cancelled()
    func.assert_awaited_once()


@pytest.mark.asyncio
async def test_timed_out_waiter_does_not_cancel_call():
    release = asyncio.Event()

    async def gated():
        await release.wait()
        return "late"

    flight = SingleFlight("test")

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(flight.run(gated), timeout=0.01)
    assert flight.in_flight

    release.set()
    await flight.join()
    assert not flight.in_flight


@pytest.mark.asyncio
async def test_cancelled_join_leaves_call_running():
    release = asyncio.Event()

    async def gated():
        await release.wait()
        return "done"

    flight = SingleFlight("test")
    runner = asyncio.ensure_future(flight.run(gated))
    await asyncio.sleep(0)
    joiner = asyncio.ensure_future(flight.join())
    await asyncio.sleep(0)

    joiner.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await runner == "done"
