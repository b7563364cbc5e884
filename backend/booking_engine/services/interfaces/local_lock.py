"""
In-process reservation lock - one asyncio.Lock per celebrity.
"""

import asyncio
from collections import defaultdict

from booking_engine.services.interfaces.reservation_lock import ReservationLock


class LocalReservationLock(ReservationLock):
    """
    Lock table keyed by celebrity id.

    Entries are created on first use and dropped when the last holder or
    waiter leaves, so the table only grows with live contention.

    Use when:
    - A single API process serves all requests
    - Tests and local development
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = defaultdict(int)

    async def acquire(self, celebrity_id: str) -> asyncio.Lock:
        lock = self._locks.setdefault(celebrity_id, asyncio.Lock())
        self._users[celebrity_id] += 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(celebrity_id)
            raise
        return lock

    async def release(self, celebrity_id: str, token: asyncio.Lock) -> None:
        token.release()
        self._forget(celebrity_id)

    def _forget(self, celebrity_id: str) -> None:
        self._users[celebrity_id] -= 1
        if self._users[celebrity_id] <= 0:
            del self._users[celebrity_id]
            self._locks.pop(celebrity_id, None)

    def active_keys(self) -> set[str]:
        return set(self._locks)
