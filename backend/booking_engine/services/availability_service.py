"""
Read-only calendar availability.

Answers "can this celebrity take [start, start + duration)?" and, when not,
suggests the next free windows of the same length. Nothing is reserved:
the answer can be stale by the time the client confirms, which is why
confirmation re-checks under the celebrity lock.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import NotFound, ValidationError
from booking_engine.core.logging import get_logger
from booking_engine.models.celebrity import Celebrity
from booking_engine.services.interval_store import Conflict, IntervalStore, open_slots

logger = get_logger(__name__)


@dataclass(frozen=True)
class Availability:
    celebrity_id: str
    event_start: datetime
    event_end: datetime
    available: bool
    conflicts: list[Conflict] = field(default_factory=list)
    alternative_slots: list[tuple[datetime, datetime]] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "celebrity_id": self.celebrity_id,
            "event_start": self.event_start,
            "event_end": self.event_end,
            "available": self.available,
            "conflicts": [c.as_dict() for c in self.conflicts],
            "alternative_slots": [{"start": s, "end": e} for s, e in self.alternative_slots],
        }


async def check_availability(
    db: AsyncSession,
    intervals: IntervalStore,
    celebrity_id: str,
    event_start: datetime,
    duration_minutes: int,
) -> Availability:
    if event_start.tzinfo is None:
        raise ValidationError("event_start must include a timezone offset", field="event_start")
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive", field="duration_minutes")
    if await db.get(Celebrity, celebrity_id) is None:
        raise NotFound(f"Celebrity {celebrity_id} not found", celebrity_id=celebrity_id)

    settings = get_settings()
    duration = timedelta(minutes=duration_minutes)
    event_end = event_start + duration

    conflicts = await intervals.find_conflicts(db, celebrity_id, event_start, event_end)
    if not conflicts:
        return Availability(celebrity_id, event_start, event_end, available=True)

    horizon = event_start + timedelta(days=settings.ALTERNATIVE_SLOT_HORIZON_DAYS)
    busy = await intervals.busy_windows(db, celebrity_id, event_start, horizon + duration)
    step = timedelta(minutes=settings.ALTERNATIVE_SLOT_STEP_MINUTES)
    alternatives = open_slots(
        busy,
        earliest=event_start + step,
        duration=duration,
        count=settings.ALTERNATIVE_SLOT_COUNT,
        step=step,
        horizon=horizon,
    )
    logger.info(
        "availability_conflict",
        celebrity_id=celebrity_id,
        conflicts=len(conflicts),
        alternatives=len(alternatives),
    )
    return Availability(
        celebrity_id,
        event_start,
        event_end,
        available=False,
        conflicts=conflicts,
        alternative_slots=alternatives,
    )
