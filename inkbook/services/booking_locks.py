"""
Inkbook — Per-Booking Lock Arena
One asyncio.Lock per booking id, created on demand and dropped once no
command holds or waits for it. Commands on different bookings never
contend.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class BookingLockArena:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, booking_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(booking_id, asyncio.Lock())
        self._users[booking_id] = self._users.get(booking_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[booking_id] -= 1
            if self._users[booking_id] == 0:
                del self._users[booking_id]
                del self._locks[booking_id]

    def is_locked(self, booking_id: str) -> bool:
        lock = self._locks.get(booking_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
