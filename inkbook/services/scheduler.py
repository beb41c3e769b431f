"""
Inkbook — Deferred Transition Scheduler
Runs one delayed, cancellable command per booking id, e.g. moving a fresh
request to "pending" once it has been handed to the artist.

The callback runs after the delay and must itself re-check the booking
state: cancelling the task is best-effort, the staleness check is what
keeps a late command from overwriting a newer state.
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DeferredCommand = Callable[[str], Awaitable[None]]


class DeferredTransitionScheduler:
    """
    Holds at most one pending task per booking id.
    Designed to be shut down from the FastAPI lifespan.
    """

    def __init__(self, delay_seconds: float):
        self.delay_seconds = delay_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._started: set[str] = set()

    def schedule(self, booking_id: str, command: DeferredCommand) -> asyncio.Task:
        """Schedule ``command(booking_id)``; replaces any task already pending for the id."""
        self.cancel(booking_id)
        task = asyncio.get_running_loop().create_task(self._run(booking_id, command))
        self._tasks[booking_id] = task
        logger.debug(
            "⏰ Deferred transition for booking %s in %.2fs", booking_id, self.delay_seconds
        )
        return task

    def cancel(self, booking_id: str) -> bool:
        """
        Cancel the task for ``booking_id`` if it is still sleeping. A command
        that already started always runs to completion.
        """
        if booking_id in self._started:
            return False
        task = self._tasks.pop(booking_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("⏰ Deferred transition for booking %s cancelled", booking_id)
        return True

    def is_scheduled(self, booking_id: str) -> bool:
        task = self._tasks.get(booking_id)
        return task is not None and not task.done()

    async def wait(self, booking_id: str) -> None:
        """Wait until the booking's deferred task has run or been cancelled."""
        task = self._tasks.get(booking_id)
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Cancel every sleeping task and let started commands finish."""
        entries = list(self._tasks.items())
        self._tasks.clear()
        cancelled = 0
        for booking_id, task in entries:
            if booking_id not in self._started:
                task.cancel()
                cancelled += 1
        for _, task in entries:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("⏰ DeferredTransitionScheduler stopped (%d tasks cancelled)", cancelled)

    # ── Runner ───────────────────────────────────────────────────────────

    async def _run(self, booking_id: str, command: DeferredCommand) -> None:
        await asyncio.sleep(self.delay_seconds)
        self._started.add(booking_id)
        try:
            await command(booking_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "⏰ Deferred transition for booking %s failed: %s", booking_id, exc, exc_info=True
            )
        finally:
            self._started.discard(booking_id)
            if self._tasks.get(booking_id) is asyncio.current_task():
                del self._tasks[booking_id]
