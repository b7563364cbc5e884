"""
Risk review queue endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.dependencies import get_orchestrator
from booking_engine.core.security import ROLE_MANAGER, ROLE_REVIEWER, Actor, require_roles
from booking_engine.db.session import get_db
from booking_engine.models.enums import ReviewStatus
from booking_engine.schemas.assessment import (
    AssessmentListResponse,
    AssessmentResponse,
    ReviewRequest,
    ReviewResponse,
)
from booking_engine.services import review_service
from booking_engine.services.booking_service import AdmissionOrchestrator

router = APIRouter(prefix="/assessments", tags=["Risk Review"])


@router.get("/", response_model=AssessmentListResponse)
async def list_assessments(
    review_status: Optional[ReviewStatus] = Query(None),
    booking_id: Optional[str] = Query(None),
    include_superseded: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    """Review queue, oldest first. Filter by `review_status=pending` for open work."""
    assessments, total = await review_service.list_assessments(
        db, review_status, booking_id, not include_superseded, page, page_size
    )
    return AssessmentListResponse(
        assessments=[AssessmentResponse.model_validate(a) for a in assessments],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: str,
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    return await review_service.get_assessment(db, assessment_id)


@router.post("/{assessment_id}/review", response_model=ReviewResponse)
async def review_assessment(
    assessment_id: str,
    request: ReviewRequest,
    actor: Actor = Depends(require_roles(ROLE_REVIEWER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """
    Record a reviewer decision. Approval admits the pending booking (slot
    permitting); rejection declines it and refunds the deposit.
    """
    outcome = await orchestrator.review(assessment_id, ReviewStatus(request.decision), actor, request.notes)
    return ReviewResponse(
        assessment_id=outcome.assessment.id,
        review_status=outcome.assessment.review_status,
        booking_id=outcome.booking.id,
        booking_status=outcome.booking.status,
        conflicts=outcome.conflicts,
    )
