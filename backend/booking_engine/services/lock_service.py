"""
Distributed reservation lock backed by Redis.
Implements ReservationLock so that several API replicas serialize
check-and-reserve per celebrity.

Degraded mode:
  Unlike a seat counter, a calendar lock cannot "fail open": admitting two
  overlapping reservations is exactly what it exists to prevent. When Redis
  is unreachable the lock degrades to the in-process lock table, which is
  still correct for a single replica, and the degradation is exported as
  a gauge so that multi-replica deployments can alert on it.
"""

from typing import Any, Optional

from redis.exceptions import LockError, RedisError

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import ReservationBusy
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import redis_connection_errors, redis_lock_fallback
from booking_engine.infrastructure.redis_client import get_redis
from booking_engine.services.interfaces.local_lock import LocalReservationLock
from booking_engine.services.interfaces.reservation_lock import ReservationLock

logger = get_logger(__name__)

LOCAL_TOKEN = "local"


class RedisReservationLock(ReservationLock):
    """
    Redis lock per celebrity: key "lock:celebrity:{id}".

    The lock carries a timeout so that a crashed holder cannot wedge a
    celebrity's calendar; transition bodies are far shorter than it.
    """

    def __init__(self, timeout: Optional[int] = None, blocking_timeout: Optional[int] = None):
        settings = get_settings()
        self.timeout = timeout or settings.LOCK_TIMEOUT_SECONDS
        self.blocking_timeout = blocking_timeout or settings.LOCK_BLOCKING_TIMEOUT_SECONDS
        self.fallback = LocalReservationLock()

    @staticmethod
    def _key(celebrity_id: str) -> str:
        return f"lock:celebrity:{celebrity_id}"

    async def acquire(self, celebrity_id: str) -> Any:
        client = await get_redis()
        if client is None:
            return await self._acquire_fallback(celebrity_id, reason="redis_disabled")

        lock = client.lock(
            self._key(celebrity_id),
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            redis_connection_errors.inc()
            return await self._acquire_fallback(celebrity_id, reason=str(e))

        if not acquired:
            logger.warning("reservation_lock_timeout", celebrity_id=celebrity_id)
            raise ReservationBusy(
                "Another reservation for this celebrity is in progress. Please try again.",
                celebrity_id=celebrity_id,
            )
        redis_lock_fallback.set(0)
        return lock

    async def release(self, celebrity_id: str, token: Any) -> None:
        if isinstance(token, tuple) and token[0] == LOCAL_TOKEN:
            await self.fallback.release(celebrity_id, token[1])
            return
        try:
            await token.release()
        except LockError:
            # Held past its timeout and already expired; nothing left to release
            logger.warning("reservation_lock_expired", celebrity_id=celebrity_id)
        except RedisError as e:
            redis_connection_errors.inc()
            logger.error("reservation_lock_release_failed", celebrity_id=celebrity_id, error=str(e))

    async def _acquire_fallback(self, celebrity_id: str, reason: str) -> tuple:
        redis_lock_fallback.set(1)
        logger.warning("reservation_lock_degraded", celebrity_id=celebrity_id, reason=reason)
        return (LOCAL_TOKEN, await self.fallback.acquire(celebrity_id))
