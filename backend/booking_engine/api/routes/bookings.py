"""
Booking endpoints: creation, admission, cancellation and lifecycle.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from booking_engine.api.dependencies import get_orchestrator
from booking_engine.core.exceptions import NotFound
from booking_engine.core.logging import get_logger
from booking_engine.core.security import ROLE_MANAGER, ROLE_REVIEWER, Actor, get_current_actor, require_roles
from booking_engine.models.enums import BookingStatus
from booking_engine.schemas.assessment import AssessmentResponse
from booking_engine.schemas.booking import (
    BalanceRequest,
    BookingAmend,
    BookingCreate,
    BookingCreatedResponse,
    BookingListResponse,
    BookingResponse,
    CancelRequest,
    CancelResponse,
    ConfirmRequest,
    ConfirmResponse,
    DeclineRequest,
    RefundResponse,
)
from booking_engine.services.booking_service import AdmissionOrchestrator, ConfirmOutcome

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _confirm_response(outcome: ConfirmOutcome) -> ConfirmResponse:
    booking, assessment = outcome.booking, outcome.assessment
    return ConfirmResponse(
        booking_id=booking.id,
        status=booking.status,
        payment_state=booking.payment_state,
        risk_level=assessment.risk_level if assessment else None,
        assessment_id=assessment.id if assessment else None,
        review_eta=outcome.review_eta,
    )


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Create a draft booking and return its quote. Nothing is reserved yet."""
    booking, pricing = await orchestrator.create(request, actor)
    return BookingCreatedResponse(
        booking_id=booking.id,
        confirmation_code=booking.confirmation_code,
        status=booking.status,
        pricing=pricing.as_dict(),
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    celebrity_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Clients see their own bookings; staff see all."""
    bookings, total = await orchestrator.list_bookings(actor, status_filter, celebrity_id, page, page_size)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_booking(booking_id, actor)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def amend_booking(
    booking_id: str,
    request: BookingAmend,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """
    Move the event window (draft or pending) or change priced items (draft
    only, re-quoted). Use after a 409 interval conflict to try another slot.
    """
    return await orchestrator.amend(booking_id, request, actor)


@router.post("/{booking_id}/confirm", response_model=ConfirmResponse)
async def confirm_booking(
    booking_id: str,
    request: ConfirmRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """
    Collect the deposit, assess risk and admit the booking.

    Low-risk bookings reserve the slot and come back `confirmed`; others
    come back `pending` with a review ETA. Overlapping windows fail with
    409 and the conflicting bookings.
    """
    outcome = await orchestrator.confirm(booking_id, request.payment_method_ref, actor)
    return _confirm_response(outcome)


@router.post("/{booking_id}/cancel", response_model=CancelResponse)
async def cancel_booking(
    booking_id: str,
    request: CancelRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Cancel a booking, release its slot and refund per the cancellation policy."""
    booking, decision = await orchestrator.cancel(booking_id, request.reason, actor)
    return CancelResponse(
        booking_id=booking.id,
        status=booking.status,
        refund=RefundResponse(
            eligible=decision.eligible,
            percentage=decision.percentage,
            amount=decision.amount,
            status=booking.refund_status,
        ),
        refund_window=decision.window,
    )


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: str,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Management approval of a pending booking; reserves the slot."""
    return await orchestrator.approve(booking_id, actor)


@router.post("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: str,
    request: DeclineRequest,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.decline(booking_id, request.reason, actor)


@router.post("/{booking_id}/balance", response_model=BookingResponse)
async def collect_balance(
    booking_id: str,
    request: BalanceRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.collect_balance(booking_id, request.payment_method_ref, actor)


@router.post("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(
    booking_id: str,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.start(booking_id, actor)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.complete(booking_id, actor)


@router.get("/{booking_id}/assessment", response_model=AssessmentResponse)
async def get_current_assessment(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    booking = await orchestrator.get_booking(booking_id, actor)
    assessment = await orchestrator.machine.current_assessment(booking.id)
    if assessment is None:
        raise NotFound("Booking has not been assessed yet", booking_id=booking.id)
    return assessment


@router.post("/{booking_id}/reassess", response_model=ConfirmResponse)
async def reassess_booking(
    booking_id: str,
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    orchestrator: AdmissionOrchestrator = Depends(get_orchestrator),
):
    """Re-score a pending booking; the previous assessment is kept as history."""
    outcome = await orchestrator.reassess(booking_id, actor)
    return _confirm_response(outcome)
