"""
Booking state machine.

The transition table is the single source of truth for the lifecycle:

    draft        --submit-----------> pending
    pending      --approve----------> confirmed     (review approved + slot reserved)
    pending      --decline----------> rejected
    draft        --cancel-----------> cancelled
    pending      --cancel-----------> cancelled
    confirmed    --cancel-----------> cancelled
    confirmed    --start------------> in_progress   (event start reached)
    in_progress  --complete---------> completed     (event end reached)
    in_progress  --emergency_cancel-> cancelled

Anything else raises InvalidTransition with the current status and the
actions that are legal from it.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
===================================================

Each transition is one compare-and-swap:

    UPDATE bookings SET status = :to, version = version + 1, ...
    WHERE id = :id AND version = :seen_version AND status = :from

If rows_affected == 0 another request moved the booking first. The row is
re-read and the transition re-evaluated against the new status: usually
that yields InvalidTransition (the booking was cancelled under us), and
after MAX_TRANSITION_RETRIES unexplained misses, ConcurrentModification.
A booking therefore can never be confirmed and cancelled concurrently.
Values that depend on the row (refund amounts) are recomputed from the
re-read booking on every attempt.

Gateway charges are claimed first: payment_state moves to `processing`
under the same version check, so only one request talks to the gateway
for a booking at a time, and cancels wait until the charge has settled.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import (
    ConcurrentModification,
    ConflictError,
    InvalidTransition,
    PaymentRequired,
    PermissionDenied,
    RiskBlocked,
    ValidationError,
)
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import record_transition, refunds, risk_assessments, transition_retries
from booking_engine.core.security import Actor
from booking_engine.models.booking import Booking
from booking_engine.models.enums import BookingStatus, PaymentState, ReviewStatus
from booking_engine.models.risk_assessment import RiskAssessment
from booking_engine.services.cancellation_policy import CancellationPolicy, RefundDecision
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.risk_engine import RiskScoringEngine, RiskVerdict
from booking_engine.services.risk_signals import SignalCollector

logger = get_logger(__name__)


class BookingEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    DECLINE = "decline"
    CANCEL = "cancel"
    START = "start"
    COMPLETE = "complete"
    EMERGENCY_CANCEL = "emergency_cancel"


TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.DRAFT, BookingEvent.SUBMIT): BookingStatus.PENDING,
    (BookingStatus.PENDING, BookingEvent.APPROVE): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.DECLINE): BookingStatus.REJECTED,
    (BookingStatus.DRAFT, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.IN_PROGRESS, BookingEvent.EMERGENCY_CANCEL): BookingStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED})

# Payment states a booking may hold while confirmed
SETTLED_PAYMENT_STATES = frozenset({PaymentState.DEPOSIT_PAID, PaymentState.PAID_IN_FULL})

# Payment states a deposit charge may start from
UNPAID_PAYMENT_STATES = frozenset({PaymentState.PENDING, PaymentState.FAILED})

ValuesArg = Union[dict, Callable[[Booking], dict], None]


def allowed_events(status: BookingStatus) -> list[str]:
    status = BookingStatus(status)
    return [event.value for (source, event) in TRANSITIONS if source == status]


def next_status(status: BookingStatus, event: BookingEvent) -> BookingStatus:
    status = BookingStatus(status)
    event = BookingEvent(event)
    target = TRANSITIONS.get((status, event))
    if target is None:
        record_transition(event.value, "invalid")
        raise InvalidTransition(
            current_status=status.value,
            allowed_actions=allowed_events(status),
            attempted=event.value,
        )
    return target


def cancel_event_for(status: BookingStatus) -> BookingEvent:
    """Cancelling a running appearance is the emergency edge."""
    if BookingStatus(status) == BookingStatus.IN_PROGRESS:
        return BookingEvent.EMERGENCY_CANCEL
    return BookingEvent.CANCEL


class BookingStateMachine:
    def __init__(
        self,
        db: AsyncSession,
        intervals: IntervalStore,
        risk_engine: Optional[RiskScoringEngine] = None,
        policy: Optional[CancellationPolicy] = None,
    ):
        self.db = db
        self.intervals = intervals
        self.risk_engine = risk_engine or RiskScoringEngine()
        self.policy = policy or CancellationPolicy.from_settings()
        self.max_retries = get_settings().MAX_TRANSITION_RETRIES

    # ------------------------------------------------------------------
    # Compare-and-swap core
    # ------------------------------------------------------------------

    async def _swap(self, booking: Booking, values: dict, label: str) -> bool:
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.version == booking.version,
                Booking.status == booking.status,
            )
            .values(version=Booking.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await self.db.refresh(booking)
            return True

        transition_retries.inc()
        logger.info(
            "booking_transition_retry",
            booking_id=booking.id,
            action=label,
            seen_version=booking.version,
            reason="version_conflict",
        )
        await self.db.refresh(booking)
        return False

    async def fire(self, booking: Booking, event: BookingEvent, values: ValuesArg = None) -> Booking:
        """
        Apply one table transition, re-evaluating it after each lost race.
        `values` may be a callable of the booking; it is called again on
        the re-read row before every attempt.
        """
        for attempt in range(1, self.max_retries + 1):
            if await self._attempt(booking, event, values, attempt):
                return booking
        self._exhausted(booking, event)

    async def _attempt(self, booking: Booking, event: BookingEvent, values: ValuesArg, attempt: int) -> bool:
        source = booking.status
        target = next_status(source, event)
        extra = values(booking) if callable(values) else (values or {})
        if not await self._swap(booking, {"status": target.value, **extra}, event.value):
            return False
        record_transition(event.value, "applied")
        logger.info(
            "booking_transition",
            booking_id=booking.id,
            transition=event.value,
            from_status=source,
            to_status=target.value,
            version=booking.version,
            attempt=attempt,
        )
        return True

    @staticmethod
    def _exhausted(booking: Booking, event: BookingEvent):
        record_transition(event.value, "retry_exhausted")
        raise ConcurrentModification(
            "Booking is being modified by another request. Please try again.",
            booking_id=booking.id,
        )

    async def amend(self, booking: Booking, values: dict, editable: frozenset) -> Booking:
        """
        Change non-status fields under the same version check.
        `editable` lists the statuses the change is legal in.
        """
        for _ in range(self.max_retries):
            if BookingStatus(booking.status) not in editable:
                raise InvalidTransition(
                    current_status=booking.status,
                    allowed_actions=allowed_events(booking.status),
                    message=f"Booking in status '{booking.status}' can no longer be amended",
                )
            # only the request holding the payment claim may touch the row
            if "payment_state" not in values:
                self.ensure_no_payment_in_flight(booking)
            if await self._swap(booking, values, "amend"):
                logger.info("booking_amended", booking_id=booking.id, fields=sorted(values), version=booking.version)
                return booking
        raise ConcurrentModification(
            "Booking is being modified by another request. Please try again.",
            booking_id=booking.id,
        )

    @staticmethod
    def ensure_no_payment_in_flight(booking: Booking) -> None:
        if booking.payment_state == PaymentState.PROCESSING.value:
            raise ConcurrentModification(
                "A payment for this booking is still being processed. Please try again.",
                booking_id=booking.id,
            )

    async def claim_payment(self, booking: Booking, editable: frozenset, claimable: frozenset) -> bool:
        """
        Move payment_state to `processing` before the gateway is called.

        Returns False when another request already holds the claim or has
        finished the payment; the caller must not charge in that case.
        """
        for _ in range(self.max_retries):
            if BookingStatus(booking.status) not in editable:
                raise InvalidTransition(
                    current_status=booking.status,
                    allowed_actions=allowed_events(booking.status),
                    message=f"No payment can be taken on a booking in status '{booking.status}'",
                )
            if PaymentState(booking.payment_state) not in claimable:
                logger.info("payment_claim_lost", booking_id=booking.id, payment_state=booking.payment_state)
                return False
            if await self._swap(booking, {"payment_state": PaymentState.PROCESSING.value}, "claim_payment"):
                logger.info("payment_claimed", booking_id=booking.id, version=booking.version)
                return True
        raise ConcurrentModification(
            "Booking is being modified by another request. Please try again.",
            booking_id=booking.id,
        )

    # ------------------------------------------------------------------
    # Risk assessment records
    # ------------------------------------------------------------------

    async def current_assessment(self, booking_id: str) -> Optional[RiskAssessment]:
        return await self.db.scalar(
            select(RiskAssessment).where(
                RiskAssessment.booking_id == booking_id,
                RiskAssessment.is_current.is_(True),
            )
            .execution_options(populate_existing=True)
        )

    async def assess(self, booking: Booking, now: datetime) -> tuple[RiskAssessment, RiskVerdict]:
        """Score the booking and store the result as its current assessment."""
        signals = await SignalCollector(self.db).collect(booking, now)
        verdict = self.risk_engine.assess(signals)

        await self.db.execute(
            update(RiskAssessment)
            .where(RiskAssessment.booking_id == booking.id, RiskAssessment.is_current.is_(True))
            .values(is_current=False, superseded_at=now)
            .execution_options(synchronize_session=False)
        )
        assessment = RiskAssessment(
            booking_id=booking.id,
            risk_score=verdict.risk_score,
            risk_level=verdict.risk_level.value,
            risk_factors=verdict.risk_factors,
            requires_review=verdict.requires_review,
            auto_block=verdict.auto_block,
            review_status=verdict.review_status.value,
            is_current=True,
            created_at=now,
        )
        self.db.add(assessment)
        await self.db.flush()

        risk_assessments.labels(level=verdict.risk_level.value).inc()
        logger.info(
            "risk_assessed",
            booking_id=booking.id,
            assessment_id=assessment.id,
            risk_score=verdict.risk_score,
            risk_level=verdict.risk_level.value,
            auto_block=verdict.auto_block,
        )
        return assessment, verdict

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit(self, booking: Booking, now: datetime) -> tuple[RiskAssessment, RiskVerdict]:
        """draft -> pending. The deposit must already be collected."""
        next_status(booking.status, BookingEvent.SUBMIT)
        if not booking.terms_accepted:
            raise ValidationError("Client must accept the booking terms before submitting", field="terms_accepted")
        if PaymentState(booking.payment_state) not in SETTLED_PAYMENT_STATES:
            raise PaymentRequired("Deposit payment has not been collected", booking_id=booking.id)

        assessment, verdict = await self.assess(booking, now)
        await self.fire(booking, BookingEvent.SUBMIT)
        return assessment, verdict

    async def approve(self, booking: Booking) -> Booking:
        """
        pending -> confirmed.

        Guards: the current assessment (if any) is approved, the deposit is
        collected, and the interval store reserves the slot. The reservation
        and the status change commit together.
        """
        next_status(booking.status, BookingEvent.APPROVE)

        assessment = await self.current_assessment(booking.id)
        if assessment is not None and assessment.review_status != ReviewStatus.APPROVED.value:
            if assessment.auto_block:
                raise RiskBlocked(
                    "Booking is blocked by risk review and has no reviewer override",
                    booking_id=booking.id,
                    assessment_id=assessment.id,
                    review_status=assessment.review_status,
                )
            raise InvalidTransition(
                current_status=booking.status,
                allowed_actions=allowed_events(booking.status),
                message=f"Risk review is '{assessment.review_status}'; it must be approved first",
            )
        if PaymentState(booking.payment_state) not in SETTLED_PAYMENT_STATES:
            raise PaymentRequired("Deposit payment has not been collected", booking_id=booking.id)

        result = await self.intervals.check_and_reserve(
            self.db,
            booking.celebrity_id,
            booking.event_start,
            booking.event_end,
            booking.id,
            on_reserved=lambda: self.fire(booking, BookingEvent.APPROVE),
        )
        if not result.ok:
            raise ConflictError(
                "Requested window overlaps an existing booking for this celebrity",
                conflicts=[c.as_dict() for c in result.conflicts],
            )
        return booking

    async def decline(self, booking: Booking, reason: Optional[str]) -> Booking:
        """pending -> rejected. Whatever was collected is refunded in full."""
        next_status(booking.status, BookingEvent.DECLINE)
        await self.intervals.release(self.db, booking.id)

        def values(current: Booking) -> dict:
            refund_amount = current.amount_paid
            return {
                "rejection_reason": reason,
                "refund_amount": refund_amount,
                "refund_percentage": 100 if refund_amount else 0,
                "refund_eligible": refund_amount > 0,
                "refund_status": "pending" if refund_amount else "not_required",
            }

        return await self.fire(booking, BookingEvent.DECLINE, values=values)

    async def cancel(self, booking: Booking, reason: Optional[str], actor: Actor, now: datetime) -> RefundDecision:
        """
        Any cancel edge. Evaluates the refund, releases the slot and records
        the cancellation in one version-checked update. After a lost race the
        edge, the guards and the refund are all worked out again from the
        re-read booking.
        """
        for attempt in range(1, self.max_retries + 1):
            event = cancel_event_for(booking.status)
            next_status(booking.status, event)
            if event == BookingEvent.EMERGENCY_CANCEL and not actor.is_staff:
                raise PermissionDenied(
                    "Only celebrity management can cancel an appearance that is in progress",
                    booking_id=booking.id,
                )
            self.ensure_no_payment_in_flight(booking)

            decision = self.policy.evaluate(booking.event_start, now, booking.total_price).capped(booking.amount_paid)
            await self.intervals.release(self.db, booking.id)
            values = {
                "cancellation_reason": reason,
                "cancelled_at": now,
                "cancelled_by": actor.id,
                "refund_eligible": decision.eligible,
                "refund_percentage": decision.percentage,
                "refund_amount": decision.amount,
                "refund_status": "pending" if decision.amount > 0 else "not_required",
            }
            if await self._attempt(booking, event, values, attempt):
                refunds.labels(window=decision.window).inc()
                return decision
        self._exhausted(booking, BookingEvent.CANCEL)

    async def start(self, booking: Booking, now: datetime) -> Booking:
        next_status(booking.status, BookingEvent.START)
        if now < booking.event_start:
            raise InvalidTransition(
                current_status=booking.status,
                allowed_actions=allowed_events(booking.status),
                message="Event has not started yet",
            )
        return await self.fire(booking, BookingEvent.START)

    async def complete(self, booking: Booking, now: datetime) -> Booking:
        next_status(booking.status, BookingEvent.COMPLETE)
        if now < booking.event_end:
            raise InvalidTransition(
                current_status=booking.status,
                allowed_actions=allowed_events(booking.status),
                message="Event has not ended yet",
            )
        return await self.fire(booking, BookingEvent.COMPLETE)
