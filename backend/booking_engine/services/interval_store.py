"""
Interval conflict store: the per-celebrity calendar of reserved windows.

CONCURRENCY STRATEGY: Keyed Lock + Check-then-Insert
====================================================

Problem:
  Two clients confirm overlapping windows for the same celebrity at once.
  Both run the overlap query, both see no conflict, both insert.
  Result: Double booking.

  A version column does not help here: the two bookings are different
  rows, and the thing being contended is the absence of an overlapping row.

Solution:
  check_and_reserve runs under a lock keyed by celebrity id
  (ReservationLock). Inside the lock it

  1. queries active intervals with start_at < end AND end_at > start
  2. on overlap, returns the conflicting bookings and writes nothing
  3. otherwise inserts the interval, runs the caller's status transition,
     and commits before the lock is released

  The commit happens inside the lock, so the next holder's overlap query
  always sees this reservation. Requests for different celebrities take
  different keys and never wait on each other.

Windows are half-open [start, end): an appearance ending at 14:30 does not
collide with one starting at 14:30.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import ValidationError
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import record_interval_check
from booking_engine.models.booking import Booking
from booking_engine.models.enums import BookingStatus
from booking_engine.models.interval import ReservedInterval
from booking_engine.services.interfaces.reservation_lock import ReservationLock

logger = get_logger(__name__)

# Only these statuses occupy the calendar
OCCUPYING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.IN_PROGRESS.value,
)


@dataclass(frozen=True)
class Conflict:
    booking_id: str
    confirmation_code: str
    start: datetime
    end: datetime
    status: str

    def as_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "confirmation_code": self.confirmation_code,
            "start": self.start,
            "end": self.end,
            "status": self.status,
        }


@dataclass(frozen=True)
class ReservationResult:
    ok: bool
    conflicts: list[Conflict] = field(default_factory=list)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def open_slots(
    busy: list[tuple[datetime, datetime]],
    earliest: datetime,
    duration: timedelta,
    count: int,
    step: timedelta,
    horizon: datetime,
) -> list[tuple[datetime, datetime]]:
    """
    First `count` windows of length `duration`, starting at `earliest` and
    moving forward by `step`, that overlap none of the `busy` windows and
    start before `horizon`.
    """
    if count <= 0 or step <= timedelta(0):
        return []

    busy = sorted(busy)
    slots = []
    candidate = earliest
    while candidate < horizon and len(slots) < count:
        candidate_end = candidate + duration
        if not any(overlaps(candidate, candidate_end, start, end) for start, end in busy):
            slots.append((candidate, candidate_end))
        candidate += step
    return slots


class IntervalStore:
    def __init__(self, lock: ReservationLock):
        self.lock = lock

    async def find_conflicts(
        self,
        db: AsyncSession,
        celebrity_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Conflict]:
        """Active reservations of `celebrity_id` overlapping [start, end)."""
        query = (
            select(ReservedInterval, Booking.confirmation_code, Booking.status)
            .join(Booking, Booking.id == ReservedInterval.booking_id)
            .where(
                ReservedInterval.celebrity_id == celebrity_id,
                ReservedInterval.start_at < end,
                ReservedInterval.end_at > start,
                Booking.status.in_(OCCUPYING_STATUSES),
            )
            .order_by(ReservedInterval.start_at)
        )
        if exclude_booking_id is not None:
            query = query.where(ReservedInterval.booking_id != exclude_booking_id)

        rows = (await db.execute(query)).all()
        return [
            Conflict(
                booking_id=interval.booking_id,
                confirmation_code=code,
                start=interval.start_at,
                end=interval.end_at,
                status=status,
            )
            for interval, code, status in rows
        ]

    async def check_and_reserve(
        self,
        db: AsyncSession,
        celebrity_id: str,
        start: datetime,
        end: datetime,
        booking_id: str,
        on_reserved: Optional[Callable[[], Awaitable[object]]] = None,
    ) -> ReservationResult:
        """
        Atomically reserve [start, end) for `booking_id` unless it overlaps.

        `on_reserved` runs after the interval is written and before the
        commit, so the reservation and the caller's status change become
        durable together. If it raises, neither is kept.

        Work already pending on `db` is committed before the lock is taken;
        the lock region must never wait on this session's own writes.
        """
        if end <= start:
            raise ValidationError("Reserved window must end after it starts", field="end")

        await db.commit()

        async with self.lock.hold(celebrity_id):
            try:
                conflicts = await self.find_conflicts(
                    db, celebrity_id, start, end, exclude_booking_id=booking_id
                )
                if conflicts:
                    record_interval_check(reserved=False)
                    logger.info(
                        "interval_conflict",
                        celebrity_id=celebrity_id,
                        booking_id=booking_id,
                        start=start.isoformat(),
                        end=end.isoformat(),
                        conflicting=[c.booking_id for c in conflicts],
                    )
                    return ReservationResult(ok=False, conflicts=conflicts)

                # A booking holds at most one window; replace any stale one
                await db.execute(delete(ReservedInterval).where(ReservedInterval.booking_id == booking_id))
                db.add(ReservedInterval(
                    celebrity_id=celebrity_id,
                    booking_id=booking_id,
                    start_at=start,
                    end_at=end,
                ))
                await db.flush()

                if on_reserved is not None:
                    await on_reserved()

                await db.commit()
            except Exception:
                await db.rollback()
                raise

        record_interval_check(reserved=True)
        logger.info(
            "interval_reserved",
            celebrity_id=celebrity_id,
            booking_id=booking_id,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return ReservationResult(ok=True)

    async def release(self, db: AsyncSession, booking_id: str) -> bool:
        """Drop the booking's window. Shrinking a calendar needs no lock."""
        result = await db.execute(
            delete(ReservedInterval)
            .where(ReservedInterval.booking_id == booking_id)
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount > 0
        if released:
            logger.info("interval_released", booking_id=booking_id)
        return released

    async def busy_windows(
        self,
        db: AsyncSession,
        celebrity_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[tuple[datetime, datetime]]:
        conflicts = await self.find_conflicts(db, celebrity_id, start, end, exclude_booking_id)
        return [(c.start, c.end) for c in conflicts]

    async def reservation_for(self, db: AsyncSession, booking_id: str) -> Optional[ReservedInterval]:
        return await db.scalar(select(ReservedInterval).where(ReservedInterval.booking_id == booking_id))
