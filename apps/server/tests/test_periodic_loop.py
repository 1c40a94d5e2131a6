from __future__ import annotations

import asyncio

import pytest
from conftest import async_wait_until

from piclimate.errors import LoopClosedError
from piclimate.periodic_loop import PeriodicLoop


@pytest.mark.asyncio
async def test_runs_action_repeatedly_until_stopped() -> None:
    calls: list[int] = []

    async def action(stop_event: asyncio.Event) -> None:
        calls.append(len(calls))

    loop = PeriodicLoop(action, 0.01)
    loop.start()
    assert await async_wait_until(lambda: len(calls) >= 3)
    await loop.stop()
    assert not loop.is_running
    count = len(calls)
    await asyncio.sleep(0.05)
    assert len(calls) == count


@pytest.mark.asyncio
async def test_invocations_never_overlap() -> None:
    active = 0
    max_active = 0
    calls = 0

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal active, max_active, calls
        active += 1
        max_active = max(max_active, active)
        await asyncio.sleep(0.02)
        active -= 1
        calls += 1

    async with PeriodicLoop(action, 0.001) as loop:
        assert await async_wait_until(lambda: calls >= 3)
        assert loop.is_running
    assert max_active == 1


@pytest.mark.asyncio
async def test_errors_are_reported_and_loop_continues() -> None:
    calls = 0
    reported: list[tuple[object, Exception]] = []

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError(f"boom {calls}")

    loop = PeriodicLoop(action, 0.01)
    loop.add_error_handler(lambda sender, exc: reported.append((sender, exc)))
    loop.start()
    assert await async_wait_until(lambda: len(reported) >= 2)
    await loop.aclose()
    assert reported[0][0] is loop
    assert str(reported[0][1]) == "boom 1"


@pytest.mark.asyncio
async def test_failing_error_handler_does_not_stop_loop() -> None:
    calls = 0

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal calls
        calls += 1
        raise ValueError("bad")

    def broken_handler(sender: object, exc: Exception) -> None:
        raise RuntimeError("handler bug")

    loop = PeriodicLoop(action, 0.01)
    loop.add_error_handler(broken_handler)
    loop.start()
    assert await async_wait_until(lambda: calls >= 2)
    await loop.aclose()


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_iteration() -> None:
    started = asyncio.Event()
    finished = False

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal finished
        started.set()
        await asyncio.sleep(0.05)
        finished = True

    loop = PeriodicLoop(action, 10.0)
    loop.start()
    await started.wait()
    await loop.stop()
    assert finished is True


@pytest.mark.asyncio
async def test_stop_interrupts_delay_promptly() -> None:
    calls = 0

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal calls
        calls += 1

    loop = PeriodicLoop(action, 60.0)
    loop.start()
    assert await async_wait_until(lambda: calls == 1)
    await asyncio.wait_for(loop.stop(), timeout=1.0)
    assert calls == 1


@pytest.mark.asyncio
async def test_start_is_idempotent_and_restartable() -> None:
    calls = 0

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal calls
        calls += 1

    loop = PeriodicLoop(action, 60.0)
    loop.start()
    loop.start()
    assert await async_wait_until(lambda: calls == 1)
    await loop.stop()
    loop.start()
    assert await async_wait_until(lambda: calls == 2)
    await loop.aclose()


@pytest.mark.asyncio
async def test_restart_from_inside_action_keeps_loop_running() -> None:
    calls = 0
    active = 0
    max_active = 0

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal calls, active, max_active
        active += 1
        max_active = max(max_active, active)
        calls += 1
        if calls == 1:
            await loop.stop()
            loop.start()
        await asyncio.sleep(0.01)
        active -= 1

    loop = PeriodicLoop(action, 0.01)
    loop.start()
    assert await async_wait_until(lambda: calls >= 3)
    assert loop.is_running
    await loop.aclose()
    assert not loop.is_running
    assert max_active == 1


@pytest.mark.asyncio
async def test_stop_from_inside_action_then_outside_waits_for_exit() -> None:
    finished = False
    stopped_inside = asyncio.Event()

    async def action(stop_event: asyncio.Event) -> None:
        nonlocal finished
        await loop.stop()
        stopped_inside.set()
        await asyncio.sleep(0.02)
        finished = True

    loop = PeriodicLoop(action, 60.0)
    loop.start()
    await stopped_inside.wait()
    await loop.stop()
    assert finished is True
    assert not loop.is_running


@pytest.mark.asyncio
async def test_closed_loop_cannot_be_used() -> None:
    async def action(stop_event: asyncio.Event) -> None:
        return None

    loop = PeriodicLoop(action, 1.0)
    await loop.aclose()
    await loop.aclose()
    assert loop.closed
    with pytest.raises(LoopClosedError, match="PeriodicLoop has been closed."):
        loop.start()
    with pytest.raises(LoopClosedError):
        await loop.stop()


def test_delay_must_be_positive() -> None:
    async def action(stop_event: asyncio.Event) -> None:
        return None

    with pytest.raises(ValueError, match="delay_s must be positive"):
        PeriodicLoop(action, 0)
