"""
Calendar availability and schedule endpoints.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.dependencies import get_orchestrator
from booking_engine.core.security import ROLE_MANAGER, Actor, get_current_actor, require_roles
from booking_engine.db.session import get_db
from booking_engine.schemas.availability import AvailabilityResponse
from booking_engine.schemas.booking import ScheduleAdvanceRequest, ScheduleAdvanceResponse
from booking_engine.services.availability_service import check_availability
from booking_engine.services.booking_service import AdmissionOrchestrator
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.strategy_factory import get_interval_store

router = APIRouter(tags=["Availability"])


@router.get("/availability", response_model=AvailabilityResponse)
async def availability(
    celebrity_id: str = Query(...),
    event_start: datetime = Query(...),
    duration_minutes: int = Query(..., gt=0, le=24 * 60),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    intervals: IntervalStore = Depends(get_interval_store),
):
    """
    Read-only check of a celebrity's calendar. Not cached and reserves
    nothing; confirmation re-checks under the celebrity lock.
    """
    result = await check_availability(db, intervals, celebrity_id, event_start, duration_minutes)
    return result.as_dict()


@router.post("/schedule/advance", response_model=ScheduleAdvanceResponse)
async def advance_schedule(
    request: Optional[ScheduleAdvanceRequest] = None,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Start confirmed bookings whose event began and complete those that ended."""
    as_of = (request.as_of if request else None) or orchestrator.clock()
    started, completed = await orchestrator.advance_schedule(as_of)
    return ScheduleAdvanceResponse(as_of=as_of, started=started, completed=completed)
