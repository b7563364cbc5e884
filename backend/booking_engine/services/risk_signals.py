"""
Risk signal collection.

Derives the reference signals for a booking from the request itself and
from booking history. Scoring is done by RiskScoringEngine.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import get_settings
from booking_engine.core.logging import get_logger
from booking_engine.models.blacklist import BlacklistedEmail
from booking_engine.models.booking import Booking
from booking_engine.models.celebrity import Celebrity
from booking_engine.models.enums import Severity
from booking_engine.services.risk_engine import RiskSignal, make_signal

logger = get_logger(__name__)


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].strip().lower()


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so `value` matches literally (escape char: backslash)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def budget_signal(budget: Optional[int], typical_fee_max: Optional[int]) -> Optional[RiskSignal]:
    if not budget or not typical_fee_max:
        return None
    settings = get_settings()
    ratio_pct = budget * 100 // typical_fee_max
    high_at = settings.BUDGET_OUTLIER_RATIO_PCT
    medium_at = (high_at + 100) // 2
    if ratio_pct >= high_at:
        severity = Severity.HIGH
    elif ratio_pct >= medium_at:
        severity = Severity.MEDIUM
    else:
        return None
    return make_signal(
        "budget_above_typical_range",
        severity,
        f"Stated budget is {ratio_pct}% of the celebrity's typical maximum fee",
    )


def mismatch_signal(budget: Optional[int], total_price: int) -> Optional[RiskSignal]:
    if budget is None or budget >= total_price:
        return None
    return make_signal(
        "service_budget_mismatch",
        Severity.MEDIUM,
        "Stated budget is below the quoted total for the selected service",
    )


def disposable_signal(domain: str) -> Optional[RiskSignal]:
    if domain not in {d.lower() for d in get_settings().DISPOSABLE_EMAIL_DOMAINS}:
        return None
    return make_signal(
        "disposable_email_domain",
        Severity.HIGH,
        "Email from known temporary/disposable domain",
    )


def repeat_signal(recent_count: int) -> Optional[RiskSignal]:
    if recent_count <= 0:
        return None
    severity = Severity.HIGH if recent_count >= 3 else Severity.MEDIUM
    return make_signal(
        "rapid_repeat_booking",
        severity,
        f"{recent_count} other booking(s) from the same contact in the last "
        f"{get_settings().RAPID_REPEAT_WINDOW_HOURS}h",
    )


def blacklisted_signal(blacklisted: bool) -> Optional[RiskSignal]:
    if not blacklisted:
        return None
    return make_signal(
        "blacklisted_email",
        Severity.HIGH,
        "Email address is blacklisted",
    )


class SignalCollector:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def collect(self, booking: Booking, now: datetime) -> list[RiskSignal]:
        celebrity = await self.db.get(Celebrity, booking.celebrity_id)
        domain = email_domain(booking.contact_email)

        signals = [
            budget_signal(booking.budget, celebrity.typical_fee_max if celebrity else None),
            await self._domain_signal(booking, domain),
            repeat_signal(await self._recent_bookings_from_contact(booking, now)),
            mismatch_signal(booking.budget, booking.total_price),
            disposable_signal(domain),
            blacklisted_signal(await self._is_blacklisted(booking.contact_email)),
        ]
        collected = [signal for signal in signals if signal is not None]
        logger.debug(
            "risk_signals_collected",
            booking_id=booking.id,
            signals=[signal.type for signal in collected],
        )
        return collected

    async def _domain_signal(self, booking: Booking, domain: str) -> Optional[RiskSignal]:
        seen = await self.db.scalar(
            select(func.count(Booking.id)).where(
                Booking.id != booking.id,
                func.lower(Booking.contact_email).like(f"%@{escape_like(domain)}", escape="\\"),
            )
        )
        if seen:
            return None
        return make_signal(
            "new_client_email_domain",
            Severity.MEDIUM,
            f"No previous bookings from email domain '{domain}'",
        )

    async def _is_blacklisted(self, email: str) -> bool:
        entry = await self.db.scalar(
            select(BlacklistedEmail.id).where(BlacklistedEmail.email == email.strip().lower())
        )
        return entry is not None

    async def _recent_bookings_from_contact(self, booking: Booking, now: datetime) -> int:
        since = now - timedelta(hours=get_settings().RAPID_REPEAT_WINDOW_HOURS)
        same_contact = [func.lower(Booking.contact_email) == booking.contact_email.lower()]
        if booking.contact_phone:
            same_contact.append(Booking.contact_phone == booking.contact_phone)
        return await self.db.scalar(
            select(func.count(Booking.id)).where(
                Booking.id != booking.id,
                Booking.created_at >= since,
                or_(*same_contact),
            )
        )
