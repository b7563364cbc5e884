"""
Tests for the booking lifecycle table and version-checked transitions.
"""

import itertools
from datetime import timedelta

import pytest

from booking_engine.core.exceptions import ConcurrentModification, InvalidTransition, PaymentRequired, PermissionDenied
from booking_engine.core.security import Actor
from booking_engine.db.base import utcnow
from booking_engine.models.booking import Booking
from booking_engine.models.enums import BookingStatus, PaymentState
from booking_engine.services.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    BookingEvent,
    BookingStateMachine,
    allowed_events,
    cancel_event_for,
    next_status,
)

from conftest import CLIENT_ID, MANAGER_ID, future_slot

CLIENT = Actor(id=CLIENT_ID, role="client")
MANAGER = Actor(id=MANAGER_ID, role="manager")


@pytest.mark.parametrize("status,event,expected", [
    (BookingStatus.DRAFT, BookingEvent.SUBMIT, BookingStatus.PENDING),
    (BookingStatus.PENDING, BookingEvent.APPROVE, BookingStatus.CONFIRMED),
    (BookingStatus.PENDING, BookingEvent.DECLINE, BookingStatus.REJECTED),
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL, BookingStatus.CANCELLED),
    (BookingStatus.CONFIRMED, BookingEvent.START, BookingStatus.IN_PROGRESS),
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE, BookingStatus.COMPLETED),
    (BookingStatus.IN_PROGRESS, BookingEvent.EMERGENCY_CANCEL, BookingStatus.CANCELLED),
])
def test_legal_transitions(status, event, expected):
    assert next_status(status, event) == expected


ILLEGAL_PAIRS = [
    (status, event)
    for status, event in itertools.product(BookingStatus, BookingEvent)
    if (status, event) not in TRANSITIONS
]


@pytest.mark.parametrize("status,event", ILLEGAL_PAIRS)
def test_illegal_transitions(status, event):
    with pytest.raises(InvalidTransition) as exc_info:
        next_status(status, event)
    assert exc_info.value.current_status == status.value
    assert exc_info.value.allowed_actions == allowed_events(status)


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert allowed_events(status) == []


def test_cancelling_in_progress_uses_emergency_edge():
    assert cancel_event_for(BookingStatus.IN_PROGRESS) == BookingEvent.EMERGENCY_CANCEL
    assert cancel_event_for(BookingStatus.CONFIRMED) == BookingEvent.CANCEL


@pytest.mark.asyncio
async def test_fire_bumps_version(db_session, intervals, insert_booking):
    booking = await insert_booking(future_slot(), status="confirmed")
    booking = await db_session.get(Booking, booking.id)
    machine = BookingStateMachine(db_session, intervals)

    await machine.fire(booking, BookingEvent.START)
    await db_session.commit()

    assert booking.status == BookingStatus.IN_PROGRESS.value
    assert booking.version == 2


@pytest.mark.asyncio
async def test_stale_writer_loses_to_cancel(session_factory, intervals, insert_booking):
    """
    Two requests load the same confirmed booking. The cancel commits first;
    the start must observe the new status instead of overwriting it.
    """
    seeded = await insert_booking(future_slot(days=-1), status="confirmed")

    async with session_factory() as first, session_factory() as second:
        cancelling = await first.get(Booking, seeded.id)
        starting = await second.get(Booking, seeded.id)

        await BookingStateMachine(first, intervals).cancel(cancelling, "change of plans", CLIENT, utcnow())
        await first.commit()

        with pytest.raises(InvalidTransition) as exc_info:
            await BookingStateMachine(second, intervals).start(starting, utcnow())
        assert exc_info.value.current_status == BookingStatus.CANCELLED.value
        await second.rollback()

    async with session_factory() as check:
        stored = await check.get(Booking, seeded.id)
        assert stored.status == BookingStatus.CANCELLED.value
        assert stored.version == 2


@pytest.mark.asyncio
async def test_client_cannot_emergency_cancel(db_session, intervals, insert_booking):
    booking = await insert_booking(future_slot(days=-1), status="in_progress")
    booking = await db_session.get(Booking, booking.id)
    machine = BookingStateMachine(db_session, intervals)

    with pytest.raises(PermissionDenied):
        await machine.cancel(booking, "no show", CLIENT, utcnow())

    decision = await machine.cancel(booking, "venue evacuated", MANAGER, utcnow())
    await db_session.commit()
    assert booking.status == BookingStatus.CANCELLED.value
    assert decision.amount == 0
    assert await intervals.reservation_for(db_session, booking.id) is None


@pytest.mark.asyncio
async def test_start_waits_for_event_time(db_session, intervals, insert_booking):
    booking = await insert_booking(future_slot(days=5), status="confirmed")
    booking = await db_session.get(Booking, booking.id)
    machine = BookingStateMachine(db_session, intervals)

    with pytest.raises(InvalidTransition):
        await machine.start(booking, utcnow())

    await machine.start(booking, booking.event_start)
    with pytest.raises(InvalidTransition):
        await machine.complete(booking, booking.event_end - timedelta(minutes=1))
    await machine.complete(booking, booking.event_end)
    assert booking.status == BookingStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_submit_requires_deposit(db_session, intervals, insert_booking):
    booking = await insert_booking(future_slot(), status="draft", amount_paid=0)
    booking = await db_session.get(Booking, booking.id)

    with pytest.raises(PaymentRequired):
        await BookingStateMachine(db_session, intervals).submit(booking, utcnow())
    assert booking.status == BookingStatus.DRAFT.value


def test_every_pair_is_either_legal_or_rejected():
    assert len(ILLEGAL_PAIRS) + len(TRANSITIONS) == len(BookingStatus) * len(BookingEvent)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(BookingStatus))
async def test_rejected_fire_leaves_row_untouched(status, db_session, session_factory, intervals, insert_booking):
    event = next(event for event in BookingEvent if (status, event) not in TRANSITIONS)
    seeded = await insert_booking(future_slot(), status=status.value)
    booking = await db_session.get(Booking, seeded.id)

    with pytest.raises(InvalidTransition) as exc_info:
        await BookingStateMachine(db_session, intervals).fire(booking, event)
    assert exc_info.value.current_status == status.value
    await db_session.rollback()

    async with session_factory() as check:
        stored = await check.get(Booking, seeded.id)
        assert stored.status == status.value
        assert stored.version == 1


@pytest.mark.asyncio
async def test_cancel_refund_follows_deposit_collected_meanwhile(session_factory, intervals, insert_booking):
    """
    The cancel loaded the draft before its deposit was recorded. After losing
    the version check it must refund what the re-read row says was paid.
    """
    seeded = await insert_booking(future_slot(), status="draft", amount_paid=0)

    async with session_factory() as paying, session_factory() as cancelling:
        stale = await cancelling.get(Booking, seeded.id)
        fresh = await paying.get(Booking, seeded.id)

        await BookingStateMachine(paying, intervals).amend(
            fresh,
            {"payment_state": PaymentState.DEPOSIT_PAID.value, "amount_paid": seeded.deposit},
            frozenset(BookingStatus),
        )
        await paying.commit()

        decision = await BookingStateMachine(cancelling, intervals).cancel(stale, "changed plans", CLIENT, utcnow())
        await cancelling.commit()

    assert decision.amount == seeded.deposit
    assert decision.eligible is True
    async with session_factory() as check:
        stored = await check.get(Booking, seeded.id)
        assert stored.status == BookingStatus.CANCELLED.value
        assert stored.refund_amount == seeded.deposit
        assert stored.refund_status == "pending"


@pytest.mark.asyncio
async def test_only_one_payment_claim(session_factory, intervals, insert_booking):
    seeded = await insert_booking(future_slot(), status="draft", amount_paid=0)
    draft_only = frozenset({BookingStatus.DRAFT})
    unpaid = frozenset({PaymentState.PENDING, PaymentState.FAILED})

    async with session_factory() as first, session_factory() as second:
        winner = await first.get(Booking, seeded.id)
        loser = await second.get(Booking, seeded.id)

        assert await BookingStateMachine(first, intervals).claim_payment(winner, draft_only, unpaid) is True
        await first.commit()
        assert await BookingStateMachine(second, intervals).claim_payment(loser, draft_only, unpaid) is False
        assert loser.payment_state == PaymentState.PROCESSING.value


@pytest.mark.asyncio
async def test_cancel_waits_for_payment_in_flight(session_factory, intervals, insert_booking):
    seeded = await insert_booking(future_slot(), status="draft", amount_paid=0)

    async with session_factory() as paying, session_factory() as cancelling:
        stale = await cancelling.get(Booking, seeded.id)
        claimed = await paying.get(Booking, seeded.id)
        await BookingStateMachine(paying, intervals).claim_payment(
            claimed, frozenset({BookingStatus.DRAFT}), frozenset({PaymentState.PENDING})
        )
        await paying.commit()

        with pytest.raises(ConcurrentModification):
            await BookingStateMachine(cancelling, intervals).cancel(stale, "changed plans", CLIENT, utcnow())
        await cancelling.rollback()

    async with session_factory() as check:
        stored = await check.get(Booking, seeded.id)
        assert stored.status == BookingStatus.DRAFT.value
        assert stored.payment_state == PaymentState.PROCESSING.value
