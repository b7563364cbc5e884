"""
Risk assessment review queue.

Reviewer decisions move an assessment through its own small state machine
(see risk_engine.next_review_status). The decision is written with a
compare-and-swap on the review status, so two reviewers acting on the same
assessment cannot both win.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import AlreadyResolved, ConcurrentModification, NotFound
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import review_decisions
from booking_engine.models.enums import ReviewStatus
from booking_engine.models.risk_assessment import RiskAssessment
from booking_engine.services.risk_engine import next_review_status

logger = get_logger(__name__)


async def get_assessment(db: AsyncSession, assessment_id: str) -> RiskAssessment:
    assessment = await db.get(RiskAssessment, assessment_id, populate_existing=True)
    if assessment is None:
        raise NotFound(f"Assessment {assessment_id} not found", assessment_id=assessment_id)
    return assessment


async def list_assessments(
    db: AsyncSession,
    review_status: Optional[ReviewStatus] = None,
    booking_id: Optional[str] = None,
    current_only: bool = True,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[RiskAssessment], int]:
    """
    Review queue listing, oldest first so the queue drains in order.
    Uses the ix_risk_assessments_review_status index when filtering by status.
    """
    query = select(RiskAssessment)
    if review_status is not None:
        query = query.where(RiskAssessment.review_status == ReviewStatus(review_status).value)
    if booking_id is not None:
        query = query.where(RiskAssessment.booking_id == booking_id)
    if current_only:
        query = query.where(RiskAssessment.is_current.is_(True))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(RiskAssessment.created_at.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def record_decision(
    db: AsyncSession,
    assessment_id: str,
    decision: ReviewStatus,
    reviewer_id: str,
    notes: Optional[str],
    now: datetime,
) -> RiskAssessment:
    """Apply a reviewer transition. Raises AlreadyResolved on terminal assessments."""
    assessment = await get_assessment(db, assessment_id)
    if not assessment.is_current:
        raise AlreadyResolved(
            "Assessment has been superseded by a newer assessment",
            assessment_id=assessment.id,
            review_status=assessment.review_status,
        )

    current = assessment.review_status
    target = next_review_status(current, decision)

    result = await db.execute(
        update(RiskAssessment)
        .where(
            RiskAssessment.id == assessment.id,
            RiskAssessment.review_status == current,
            RiskAssessment.is_current.is_(True),
        )
        .values(
            review_status=target.value,
            reviewer_id=reviewer_id,
            reviewer_notes=notes,
            reviewed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(assessment)

    if result.rowcount == 0:
        # Lost to another reviewer; report the state they left behind
        next_review_status(assessment.review_status, decision)
        raise ConcurrentModification(
            "Assessment is being reviewed by another request. Please try again.",
            assessment_id=assessment.id,
        )

    review_decisions.labels(decision=target.value).inc()
    logger.info(
        "assessment_reviewed",
        assessment_id=assessment.id,
        booking_id=assessment.booking_id,
        from_status=current,
        to_status=target.value,
        reviewer_id=reviewer_id,
    )
    return assessment
