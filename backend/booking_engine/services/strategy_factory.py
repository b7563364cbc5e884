"""
Reservation lock strategy factory.
Configures which per-celebrity lock the interval store serializes on.
"""

from booking_engine.core.config import settings
from booking_engine.services.interfaces.local_lock import LocalReservationLock
from booking_engine.services.interfaces.reservation_lock import ReservationLock
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.lock_service import RedisReservationLock


def get_lock_strategy() -> ReservationLock:
    """
    Get configured reservation lock.

    Strategy selection based on deployment:
    - Single API process: LocalReservationLock (asyncio lock table)
    - Several replicas: RedisReservationLock (shared Redis lock)

    Can be overridden via LOCK_STRATEGY env var.
    """
    strategy = getattr(settings, 'LOCK_STRATEGY', 'local')

    if strategy == 'redis':
        return RedisReservationLock()
    else:
        return LocalReservationLock()


# Singleton instance: every request must share one lock table
_store: IntervalStore = None

def get_interval_store() -> IntervalStore:
    """Get interval store singleton."""
    global _store
    if _store is None:
        _store = IntervalStore(get_lock_strategy())
    return _store
