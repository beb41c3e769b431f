import asyncio

import pytest

from inkbook.services.booking_locks import BookingLockArena
from inkbook.services.scheduler import DeferredTransitionScheduler


@pytest.mark.asyncio
async def test_deferred_command_runs_after_delay():
    scheduler = DeferredTransitionScheduler(delay_seconds=0.01)
    ran: list[str] = []

    async def command(booking_id: str) -> None:
        ran.append(booking_id)

    scheduler.schedule("B1", command)
    assert scheduler.is_scheduled("B1")

    await scheduler.wait("B1")

    assert ran == ["B1"]
    assert not scheduler.is_scheduled("B1")


@pytest.mark.asyncio
async def test_cancelled_command_never_runs():
    scheduler = DeferredTransitionScheduler(delay_seconds=0.05)
    ran: list[str] = []

    async def command(booking_id: str) -> None:
        ran.append(booking_id)

    scheduler.schedule("B1", command)
    assert scheduler.cancel("B1") is True
    await asyncio.sleep(0.1)

    assert ran == []
    assert scheduler.cancel("B1") is False


@pytest.mark.asyncio
async def test_started_command_is_not_cancelled():
    scheduler = DeferredTransitionScheduler(delay_seconds=0)
    started = asyncio.Event()
    release = asyncio.Event()
    finished: list[str] = []

    async def command(booking_id: str) -> None:
        started.set()
        await release.wait()
        finished.append(booking_id)

    scheduler.schedule("B1", command)
    await started.wait()

    assert scheduler.cancel("B1") is False
    release.set()
    await scheduler.wait("B1")

    assert finished == ["B1"]


@pytest.mark.asyncio
async def test_failing_command_is_logged_not_raised():
    scheduler = DeferredTransitionScheduler(delay_seconds=0)

    async def command(booking_id: str) -> None:
        raise RuntimeError("boom")

    scheduler.schedule("B1", command)
    await scheduler.wait("B1")


@pytest.mark.asyncio
async def test_stop_cancels_sleeping_tasks():
    scheduler = DeferredTransitionScheduler(delay_seconds=10)
    ran: list[str] = []

    async def command(booking_id: str) -> None:
        ran.append(booking_id)

    scheduler.schedule("B1", command)
    scheduler.schedule("B2", command)
    await scheduler.stop()

    assert ran == []
    assert not scheduler.is_scheduled("B1")


@pytest.mark.asyncio
async def test_same_booking_commands_are_serialized():
    arena = BookingLockArena()
    events: list[str] = []

    async def command(name: str) -> None:
        async with arena.hold("B1"):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    await asyncio.gather(command("confirm"), command("cancel"))

    assert events in (
        ["confirm:start", "confirm:end", "cancel:start", "cancel:end"],
        ["cancel:start", "cancel:end", "confirm:start", "confirm:end"],
    )
    assert len(arena) == 0


@pytest.mark.asyncio
async def test_different_bookings_do_not_contend():
    arena = BookingLockArena()
    inside = asyncio.Event()

    async with arena.hold("B1"):
        async with arena.hold("B2"):
            inside.set()
        assert arena.is_locked("B1")
        assert not arena.is_locked("B2")

    assert inside.is_set()
    assert len(arena) == 0
