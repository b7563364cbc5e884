"""
Per-celebrity reservation lock interface.
Allows swapping between an in-process lock table and a distributed lock.
"""

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from booking_engine.core.metrics import lock_wait


class ReservationLock(ABC):
    """
    Mutual exclusion keyed by celebrity id.

    Two check-and-reserve calls for the same celebrity never interleave;
    calls for different celebrities never wait on each other.

    Implementations:
    - LocalReservationLock: asyncio locks, correct within one process
    - RedisReservationLock: Redis lock, correct across replicas
    """

    @abstractmethod
    async def acquire(self, celebrity_id: str) -> Any:
        """
        Block until the celebrity's lock is held.

        Returns:
            An opaque token passed back to release()

        Raises:
            ReservationBusy if the lock could not be obtained in time
        """
        pass

    @abstractmethod
    async def release(self, celebrity_id: str, token: Any) -> None:
        pass

    @asynccontextmanager
    async def hold(self, celebrity_id: str) -> AsyncIterator[None]:
        started = time.perf_counter()
        token = await self.acquire(celebrity_id)
        lock_wait.observe(time.perf_counter() - started)
        try:
            yield
        finally:
            await self.release(celebrity_id, token)
