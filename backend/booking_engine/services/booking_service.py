"""
Admission orchestrator: the boundary operations of the booking engine.

Sequencing per operation:

  create   validate -> quote -> persist draft -> return quote
  confirm  claim payment -> collect deposit (gateway) -> submit (risk assessment)
           -> commit
           LOW risk       -> approve: check-and-reserve slot + confirm, one commit
           MEDIUM / HIGH  -> stay pending, no slot held, review ETA returned
  cancel   refund evaluation -> release slot -> cancel transition -> commit
           -> refund instruction to the gateway

COMMIT DISCIPLINE
=================

Every transition is committed before an external collaborator is told
about it. A gateway refund or a notification that fails afterwards is
logged and recorded on the booking; it never rolls the transition back.
A failure that needs undoing is undone by a later compensating
transition, not by editing history.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import (
    AlreadyConfirmed,
    AlreadyResolved,
    ConcurrentModification,
    ConflictError,
    InvalidTransition,
    NotFound,
    PaymentRequired,
    PermissionDenied,
    RiskBlocked,
    ServiceNotFound,
    ValidationError,
)
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import record_admission
from booking_engine.core.security import ROLE_CLIENT, Actor
from booking_engine.db.base import utcnow
from booking_engine.models.booking import Booking
from booking_engine.models.celebrity import Celebrity
from booking_engine.models.enums import BookingStatus, FeeTierKind, PaymentState, ReviewStatus
from booking_engine.models.risk_assessment import RiskAssessment
from booking_engine.schemas.booking import BookingAmend, BookingCreate
from booking_engine.services import catalog_service, review_service
from booking_engine.services.cancellation_policy import CancellationPolicy, RefundDecision
from booking_engine.services.interfaces.notifier import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_REJECTED,
    RISK_ALERT,
    Notifier,
)
from booking_engine.services.interfaces.payment_gateway import PaymentGateway, PaymentResult
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.pricing_service import PricingBreakdown, quote
from booking_engine.services.risk_engine import RiskScoringEngine
from booking_engine.services.state_machine import (
    SETTLED_PAYMENT_STATES,
    TERMINAL_STATUSES,
    UNPAID_PAYMENT_STATES,
    BookingStateMachine,
    allowed_events,
)

logger = get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8

DRAFT_ONLY = frozenset({BookingStatus.DRAFT})
SLOT_EDITABLE = frozenset({BookingStatus.DRAFT, BookingStatus.PENDING})
PRICING_EDITABLE = frozenset({BookingStatus.DRAFT})
ANY_STATUS = frozenset(BookingStatus)
ADMITTED = frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED})
BALANCE_DUE = frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})


def generate_confirmation_code() -> str:
    return "CB-" + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


@dataclass
class ConfirmOutcome:
    booking: Booking
    assessment: Optional[RiskAssessment] = None
    review_eta: Optional[datetime] = None


@dataclass
class ReviewOutcome:
    assessment: RiskAssessment
    booking: Booking
    conflicts: list[dict]


class AdmissionOrchestrator:
    def __init__(
        self,
        db: AsyncSession,
        intervals: IntervalStore,
        gateway: PaymentGateway,
        notifier: Notifier,
        risk_engine: Optional[RiskScoringEngine] = None,
        policy: Optional[CancellationPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.intervals = intervals
        self.gateway = gateway
        self.notifier = notifier
        self.machine = BookingStateMachine(db, intervals, risk_engine, policy)
        self.clock = clock
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: str, actor: Optional[Actor] = None) -> Booking:
        booking = await self.db.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
        if actor is not None and actor.role == ROLE_CLIENT and booking.client_id != actor.id:
            raise PermissionDenied("Booking belongs to another client", booking_id=booking_id)
        return booking

    async def list_bookings(
        self,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        celebrity_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Booking], int]:
        query = select(Booking)
        if actor.role == ROLE_CLIENT:
            query = query.where(Booking.client_id == actor.id)
        if status is not None:
            query = query.where(Booking.status == BookingStatus(status).value)
        if celebrity_id is not None:
            query = query.where(Booking.celebrity_id == celebrity_id)

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await self.db.execute(
            query.order_by(Booking.event_start.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Create / amend
    # ------------------------------------------------------------------

    def _validate_start(self, event_start: datetime, now: datetime) -> None:
        if event_start.tzinfo is None:
            raise ValidationError("event_start must include a timezone offset", field="event_start")
        if event_start <= now:
            raise ValidationError("Event must start in the future", field="event_start")

    async def _price(
        self,
        celebrity_id: str,
        service_id: str,
        add_on_ids: list[str],
        distance_tier: str,
        security_tier: str,
    ) -> PricingBreakdown:
        celebrity = await self.db.get(Celebrity, celebrity_id)
        if celebrity is None:
            raise NotFound(f"Celebrity {celebrity_id} not found", celebrity_id=celebrity_id)
        if not celebrity.available:
            raise ValidationError("Celebrity is not currently available for bookings", field="celebrity_id")

        service = await catalog_service.get_service(self.db, service_id)
        if service.celebrity_id != celebrity.id or not service.active:
            raise ServiceNotFound(f"Service {service_id} not found for this celebrity", service_id=service_id)

        add_ons = await catalog_service.resolve_add_ons(self.db, service, add_on_ids)
        return quote(
            base_price=service.base_price,
            add_on_prices=[add_on.price for add_on in add_ons],
            travel_expenses=await catalog_service.tier_amount(self.db, FeeTierKind.TRAVEL, distance_tier),
            security_fees=await catalog_service.tier_amount(self.db, FeeTierKind.SECURITY, security_tier),
            currency=service.currency,
            deposit_rate_bps=celebrity.deposit_rate_bps,
        )

    async def _unique_code(self) -> str:
        while True:
            code = generate_confirmation_code()
            taken = await self.db.scalar(select(Booking.id).where(Booking.confirmation_code == code))
            if taken is None:
                return code

    async def create(self, request: BookingCreate, actor: Actor) -> tuple[Booking, PricingBreakdown]:
        """CreateBooking: validate, quote, persist a draft."""
        now = self.clock()
        self._validate_start(request.event_start, now)
        pricing = await self._price(
            request.celebrity_id,
            request.service_id,
            request.additional_service_ids,
            request.distance_tier,
            request.security_tier,
        )

        booking = Booking(
            confirmation_code=await self._unique_code(),
            celebrity_id=request.celebrity_id,
            service_id=request.service_id,
            client_id=actor.id,
            event_start=request.event_start,
            event_end=request.event_start + timedelta(minutes=request.event_duration_minutes),
            event_duration_minutes=request.event_duration_minutes,
            event_type=request.event_type,
            location=request.location,
            attendees=request.attendees,
            special_requests=request.special_requests,
            contact_name=request.client_contact.name,
            contact_email=str(request.client_contact.email),
            contact_phone=request.client_contact.phone,
            budget=request.budget,
            terms_accepted=request.terms_accepted,
            additional_service_ids=list(request.additional_service_ids),
            distance_tier=request.distance_tier,
            security_tier=request.security_tier,
            status=BookingStatus.DRAFT.value,
            payment_state=PaymentState.PENDING.value,
            created_at=now,
            updated_at=now,
            **pricing.column_values(),
        )
        self.db.add(booking)
        await self.db.flush()
        await self.db.refresh(booking)

        logger.info(
            "booking_created",
            booking_id=booking.id,
            confirmation_code=booking.confirmation_code,
            celebrity_id=booking.celebrity_id,
            total_price=pricing.total_price,
            deposit=pricing.deposit,
        )
        return booking, pricing

    async def amend(self, booking_id: str, request: BookingAmend, actor: Actor) -> Booking:
        """
        Move the slot (draft or pending) and/or change priced items (draft
        only). Priced changes re-quote the whole breakdown.
        """
        booking = await self.get_booking(booking_id, actor)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("Nothing to amend")

        values = {}
        editable = SLOT_EDITABLE
        if "event_start" in changes or "event_duration_minutes" in changes:
            start = changes.get("event_start", booking.event_start)
            duration = changes.get("event_duration_minutes", booking.event_duration_minutes)
            self._validate_start(start, self.clock())
            values.update(
                event_start=start,
                event_end=start + timedelta(minutes=duration),
                event_duration_minutes=duration,
            )

        priced_fields = {"additional_service_ids", "distance_tier", "security_tier"}
        if priced_fields & changes.keys():
            editable = PRICING_EDITABLE
            add_on_ids = changes.get("additional_service_ids", booking.additional_service_ids)
            distance_tier = changes.get("distance_tier", booking.distance_tier)
            security_tier = changes.get("security_tier", booking.security_tier)
            if BookingStatus(booking.status) in PRICING_EDITABLE:
                pricing = await self._price(
                    booking.celebrity_id, booking.service_id, add_on_ids, distance_tier, security_tier
                )
                values.update(pricing.column_values())
            values.update(
                additional_service_ids=list(add_on_ids),
                distance_tier=distance_tier,
                security_tier=security_tier,
            )

        return await self.machine.amend(booking, values, editable)

    # ------------------------------------------------------------------
    # Confirm / admission
    # ------------------------------------------------------------------

    async def confirm(
        self,
        booking_id: str,
        payment_method_ref: Optional[str],
        actor: Actor,
    ) -> ConfirmOutcome:
        """
        ConfirmBooking. A draft is paid, assessed and submitted; a pending
        booking re-attempts admission once its review is approved.
        """
        now = self.clock()
        booking = await self.get_booking(booking_id, actor)
        status = BookingStatus(booking.status)

        if status in ADMITTED:
            raise AlreadyConfirmed(
                f"Booking {booking.confirmation_code} is already {status.value}",
                booking_id=booking.id,
                status=status.value,
            )
        if status in TERMINAL_STATUSES:
            raise InvalidTransition(current_status=status.value, allowed_actions=[], attempted="confirm")
        if status == BookingStatus.PENDING:
            return await self._readmit(booking)

        if not booking.terms_accepted:
            raise ValidationError("Client must accept the booking terms before confirming", field="terms_accepted")
        if PaymentState(booking.payment_state) not in SETTLED_PAYMENT_STATES:
            if booking.deposit > 0 and not payment_method_ref:
                raise PaymentRequired("A payment method is required to collect the deposit", booking_id=booking.id)
            if not await self.machine.claim_payment(booking, DRAFT_ONLY, UNPAID_PAYMENT_STATES):
                raise self._already_confirmed(booking)
            await self.db.commit()
            await self._collect_deposit(booking, payment_method_ref)
            await self.db.commit()

        try:
            assessment, verdict = await self.machine.submit(booking, now)
        except InvalidTransition:
            if BookingStatus(booking.status) not in TERMINAL_STATUSES:
                raise self._already_confirmed(booking)
            raise
        await self.db.commit()

        if verdict.raises_alert:
            await self._notify(RISK_ALERT, {
                **self._payload(booking),
                "assessment_id": assessment.id,
                "risk_score": verdict.risk_score,
                "risk_factors": verdict.risk_factors,
            })

        if not verdict.requires_review:
            await self._admit(booking)
            return ConfirmOutcome(booking, assessment)

        record_admission("pending_review")
        return ConfirmOutcome(booking, assessment, review_eta=self._review_eta(assessment))

    @staticmethod
    def _already_confirmed(booking: Booking) -> AlreadyConfirmed:
        """Duplicate confirm: another request holds or has finished this booking's admission."""
        if booking.status == BookingStatus.DRAFT.value:
            state = "being confirmed"
        else:
            state = booking.status
        return AlreadyConfirmed(
            f"Booking {booking.confirmation_code} is already {state}",
            booking_id=booking.id,
            status=booking.status,
        )

    async def _readmit(self, booking: Booking) -> ConfirmOutcome:
        assessment = await self.machine.current_assessment(booking.id)
        if assessment is None or assessment.review_status == ReviewStatus.APPROVED.value:
            await self._admit(booking)
            return ConfirmOutcome(booking, assessment)
        if assessment.auto_block:
            record_admission("blocked")
            raise RiskBlocked(
                "Booking is blocked by risk review and has no reviewer override",
                booking_id=booking.id,
                assessment_id=assessment.id,
                review_status=assessment.review_status,
            )
        record_admission("pending_review")
        return ConfirmOutcome(booking, assessment, review_eta=self._review_eta(assessment))

    def _review_eta(self, assessment: RiskAssessment) -> datetime:
        return assessment.created_at + timedelta(hours=self.settings.REVIEW_SLA_HOURS)

    async def _admit(self, booking: Booking) -> Booking:
        try:
            await self.machine.approve(booking)
        except ConflictError:
            record_admission("conflict")
            raise
        except RiskBlocked:
            record_admission("blocked")
            raise
        except InvalidTransition:
            # the reservation was rolled back; see who moved the booking
            await self.db.refresh(booking)
            if BookingStatus(booking.status) in ADMITTED:
                raise self._already_confirmed(booking)
            raise
        record_admission("confirmed")
        await self._notify(BOOKING_CONFIRMED, self._payload(booking))
        return booking

    async def approve(self, booking_id: str, actor: Actor) -> Booking:
        """ApproveBooking: celebrity management admits a pending booking."""
        booking = await self.get_booking(booking_id, actor)
        logger.info("booking_approval_requested", booking_id=booking.id, actor_id=actor.id)
        return await self._admit(booking)

    async def decline(self, booking_id: str, reason: Optional[str], actor: Actor) -> Booking:
        """DeclineBooking: pending -> rejected, collected money returned in full."""
        booking = await self.get_booking(booking_id, actor)
        return await self._reject(booking, reason or "Declined by celebrity management")

    async def _reject(self, booking: Booking, reason: str) -> Booking:
        await self.machine.decline(booking, reason)
        await self.db.commit()
        await self._refund(booking, booking.refund_amount)
        await self._notify(BOOKING_REJECTED, {**self._payload(booking), "reason": reason})
        return booking

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def _charge(
        self,
        booking: Booking,
        amount: int,
        payment_method_ref: str,
        purpose: str,
        on_failure: PaymentState,
    ) -> PaymentResult:
        """Collect through the gateway. The caller holds the payment claim; a failed charge hands it back."""
        try:
            result = await self.gateway.collect(booking.id, amount, booking.currency, payment_method_ref, purpose)
        except Exception:
            await self._release_claim(booking, on_failure)
            raise
        if not result.success:
            await self._release_claim(booking, on_failure)
            logger.warning(f"{purpose}_collection_failed", booking_id=booking.id, reason=result.failure_reason)
            raise PaymentRequired(
                f"{purpose.capitalize()} payment failed",
                booking_id=booking.id,
                reason=result.failure_reason,
            )
        return result

    async def _release_claim(self, booking: Booking, payment_state: PaymentState) -> None:
        await self.machine.amend(booking, {"payment_state": payment_state.value}, ANY_STATUS)
        await self.db.commit()

    async def _collect_deposit(self, booking: Booking, payment_method_ref: Optional[str]) -> None:
        if booking.deposit == 0:
            await self.machine.amend(booking, {"payment_state": PaymentState.DEPOSIT_PAID.value}, ANY_STATUS)
            return

        result = await self._charge(booking, booking.deposit, payment_method_ref, "deposit", PaymentState.FAILED)
        paid_in_full = booking.deposit >= booking.total_price
        await self.machine.amend(
            booking,
            {
                "payment_state": (PaymentState.PAID_IN_FULL if paid_in_full else PaymentState.DEPOSIT_PAID).value,
                "amount_paid": booking.deposit,
                "payment_reference": result.reference,
            },
            ANY_STATUS,
        )
        logger.info("deposit_collected", booking_id=booking.id, amount=booking.deposit, reference=result.reference)

    async def collect_balance(self, booking_id: str, payment_method_ref: str, actor: Actor) -> Booking:
        """CollectBalance: settle the remainder of a confirmed booking."""
        booking = await self.get_booking(booking_id, actor)
        if BookingStatus(booking.status) not in BALANCE_DUE:
            raise InvalidTransition(
                current_status=booking.status,
                allowed_actions=allowed_events(booking.status),
                message=f"Balance can only be collected on a confirmed booking, not '{booking.status}'",
            )
        if not await self.machine.claim_payment(booking, BALANCE_DUE, frozenset({PaymentState.DEPOSIT_PAID})):
            if booking.payment_state == PaymentState.PAID_IN_FULL.value:
                raise AlreadyResolved("Booking is already paid in full", booking_id=booking.id)
            raise AlreadyResolved(
                "Balance collection is already in progress",
                booking_id=booking.id,
                payment_state=booking.payment_state,
            )
        await self.db.commit()

        due = booking.total_price - booking.amount_paid
        result = await self._charge(booking, due, payment_method_ref, "balance", PaymentState.DEPOSIT_PAID)
        await self.machine.amend(
            booking,
            {
                "payment_state": PaymentState.PAID_IN_FULL.value,
                "amount_paid": booking.total_price,
                "payment_reference": result.reference,
            },
            BALANCE_DUE,
        )
        logger.info("balance_collected", booking_id=booking.id, amount=due)
        return booking

    async def _refund(self, booking: Booking, amount: int) -> None:
        """Hand a refund to the gateway after the transition is committed."""
        if amount <= 0:
            return
        result = await self.gateway.refund(booking.id, amount, booking.currency, booking.payment_reference)
        if result.success:
            values = {"payment_state": PaymentState.REFUNDED.value, "refund_status": "issued"}
            logger.info("refund_issued", booking_id=booking.id, amount=amount, reference=result.reference)
        else:
            values = {"refund_status": "failed"}
            logger.error("refund_failed", booking_id=booking.id, amount=amount, reason=result.failure_reason)
        await self.machine.amend(booking, values, ANY_STATUS)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(self, booking_id: str, reason: Optional[str], actor: Actor) -> tuple[Booking, RefundDecision]:
        """CancelBooking. Raises InvalidTransition on terminal bookings."""
        booking = await self.get_booking(booking_id, actor)
        decision = await self.machine.cancel(booking, reason, actor, self.clock())
        await self.db.commit()

        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            cancelled_by=actor.id,
            refund_window=decision.window,
            refund_amount=decision.amount,
        )
        await self._refund(booking, decision.amount)
        await self._notify(BOOKING_CANCELLED, {
            **self._payload(booking),
            "reason": reason,
            "refund_amount": decision.amount,
        })
        return booking, decision

    # ------------------------------------------------------------------
    # Time-driven transitions
    # ------------------------------------------------------------------

    async def start(self, booking_id: str, actor: Actor) -> Booking:
        booking = await self.get_booking(booking_id, actor)
        return await self.machine.start(booking, self.clock())

    async def complete(self, booking_id: str, actor: Actor) -> Booking:
        booking = await self.get_booking(booking_id, actor)
        return await self.machine.complete(booking, self.clock())

    async def advance_schedule(self, as_of: Optional[datetime] = None) -> tuple[list[str], list[str]]:
        """
        Sweep due bookings: confirmed -> in_progress once started, then
        in_progress -> completed once ended. A booking that loses a race
        to another request is skipped and picked up by the next sweep.
        """
        as_of = as_of or self.clock()
        if as_of.tzinfo is None:
            raise ValidationError("as_of must include a timezone offset", field="as_of")
        started = await self._sweep(
            select(Booking).where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.event_start <= as_of,
            ),
            lambda booking: self.machine.start(booking, as_of),
        )
        completed = await self._sweep(
            select(Booking).where(
                Booking.status == BookingStatus.IN_PROGRESS.value,
                Booking.event_end <= as_of,
            ),
            lambda booking: self.machine.complete(booking, as_of),
        )
        logger.info("schedule_advanced", as_of=as_of.isoformat(), started=len(started), completed=len(completed))
        return started, completed

    async def _sweep(self, query, transition) -> list[str]:
        result = await self.db.execute(query.order_by(Booking.event_start.asc()))
        moved = []
        for booking in result.scalars().all():
            try:
                await transition(booking)
            except (InvalidTransition, ConcurrentModification) as e:
                logger.info("schedule_skip", booking_id=booking.id, reason=e.message)
                continue
            moved.append(booking.id)
        await self.db.commit()
        return moved

    # ------------------------------------------------------------------
    # Risk review
    # ------------------------------------------------------------------

    async def review(
        self,
        assessment_id: str,
        decision: ReviewStatus,
        reviewer: Actor,
        notes: Optional[str] = None,
    ) -> ReviewOutcome:
        """
        ReviewAssessment. The reviewer decision is committed first; an
        approval then admits the pending booking, a rejection declines it.
        A slot conflict at admission leaves the booking pending.
        """
        assessment = await review_service.record_decision(
            self.db, assessment_id, decision, reviewer.id, notes, self.clock()
        )
        await self.db.commit()

        booking = await self.get_booking(assessment.booking_id)
        conflicts = []
        if booking.status == BookingStatus.PENDING.value:
            if assessment.review_status == ReviewStatus.APPROVED.value:
                try:
                    await self._admit(booking)
                except ConflictError as e:
                    conflicts = e.conflicts
                    await self.db.refresh(booking)
            elif assessment.review_status == ReviewStatus.REJECTED.value:
                await self._reject(booking, "Rejected by risk review")
        return ReviewOutcome(assessment, booking, conflicts)

    async def reassess(self, booking_id: str, actor: Actor) -> ConfirmOutcome:
        """Score a pending booking again; the previous assessment is superseded."""
        booking = await self.get_booking(booking_id, actor)
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidTransition(
                current_status=booking.status,
                allowed_actions=allowed_events(booking.status),
                message="Only pending bookings can be re-assessed",
            )
        assessment, verdict = await self.machine.assess(booking, self.clock())
        await self.db.commit()

        if verdict.raises_alert:
            await self._notify(RISK_ALERT, {
                **self._payload(booking),
                "assessment_id": assessment.id,
                "risk_score": verdict.risk_score,
                "risk_factors": verdict.risk_factors,
            })
        if not verdict.requires_review:
            try:
                await self._admit(booking)
            except ConflictError:
                await self.db.refresh(booking)
            return ConfirmOutcome(booking, assessment)
        return ConfirmOutcome(booking, assessment, review_eta=self._review_eta(assessment))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @staticmethod
    def _payload(booking: Booking) -> dict:
        return {
            "booking_id": booking.id,
            "confirmation_code": booking.confirmation_code,
            "celebrity_id": booking.celebrity_id,
            "client_id": booking.client_id,
            "event_start": booking.event_start.isoformat(),
            "status": booking.status,
        }

    async def _notify(self, event_type: str, payload: dict) -> None:
        try:
            await self.notifier.publish(event_type, payload)
        except Exception as e:
            logger.error("notification_failed", event_type=event_type, booking_id=payload.get("booking_id"), error=str(e))
