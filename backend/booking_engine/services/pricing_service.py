"""
Pricing calculator.

Pure functions over integer minor units (cents). Rates are basis points
(1/100 of a percent) so that every step stays in integer arithmetic:

    service_fee = round_half_up((base + add_ons) * SERVICE_FEE_BPS / 10000)
    total       = base + add_ons + travel + security + service_fee
    deposit     = round_half_up(total * deposit_rate_bps / 10000)
    balance     = total - deposit

Balance is always derived, so deposit + balance == total holds exactly and
any rounding lands in the balance.
"""

from dataclasses import dataclass, asdict
from typing import Iterable, Optional

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import ValidationError

BPS_DENOMINATOR = 10_000


def apply_rate(amount: int, rate_bps: int) -> int:
    """amount * rate, rounded half up, in integer arithmetic."""
    return (amount * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


@dataclass(frozen=True)
class PricingBreakdown:
    base_price: int
    additional_services_total: int
    travel_expenses: int
    security_fees: int
    service_fee: int
    total_price: int
    deposit_rate_bps: int
    deposit: int
    currency: str

    @property
    def balance(self) -> int:
        return self.total_price - self.deposit

    @property
    def deposit_rate(self) -> float:
        """Display-only ratio; never used in arithmetic."""
        return self.deposit_rate_bps / BPS_DENOMINATOR

    def as_dict(self) -> dict:
        data = asdict(self)
        data["balance"] = self.balance
        data["deposit_rate"] = self.deposit_rate
        return data

    def column_values(self) -> dict:
        """Values for the pricing columns of a Booking row."""
        return asdict(self)


def build_breakdown(
    base_price: int,
    additional_services_total: int,
    travel_expenses: int,
    security_fees: int,
    service_fee: int,
    deposit_rate_bps: int,
    currency: str,
) -> PricingBreakdown:
    """Assemble a breakdown from already-known components."""
    components = {
        "base_price": base_price,
        "additional_services_total": additional_services_total,
        "travel_expenses": travel_expenses,
        "security_fees": security_fees,
        "service_fee": service_fee,
    }
    for name, value in components.items():
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer amount in minor units", field=name)
        if value < 0:
            raise ValidationError(f"{name} must not be negative", field=name)
    if not 0 <= deposit_rate_bps <= BPS_DENOMINATOR:
        raise ValidationError("deposit rate must be between 0 and 10000 basis points", field="deposit_rate_bps")

    total = sum(components.values())
    deposit = apply_rate(total, deposit_rate_bps)
    return PricingBreakdown(
        **components,
        total_price=total,
        deposit_rate_bps=deposit_rate_bps,
        deposit=deposit,
        currency=currency,
    )


def quote(
    base_price: int,
    add_on_prices: Iterable[int],
    travel_expenses: int,
    security_fees: int,
    currency: Optional[str] = None,
    deposit_rate_bps: Optional[int] = None,
    service_fee_bps: Optional[int] = None,
) -> PricingBreakdown:
    """
    Price a booking request.

    `base_price` comes from the catalog entry, `add_on_prices` are the
    selected add-ons, travel and security are tier amounts resolved by the
    caller. `deposit_rate_bps` is the celebrity override if one exists.
    """
    settings = get_settings()
    additional_total = sum(add_on_prices)
    fee_bps = settings.SERVICE_FEE_BPS if service_fee_bps is None else service_fee_bps
    service_fee = apply_rate(base_price + additional_total, fee_bps)
    return build_breakdown(
        base_price=base_price,
        additional_services_total=additional_total,
        travel_expenses=travel_expenses,
        security_fees=security_fees,
        service_fee=service_fee,
        deposit_rate_bps=settings.DEPOSIT_RATE_BPS if deposit_rate_bps is None else deposit_rate_bps,
        currency=currency or settings.CURRENCY,
    )


def breakdown_of(booking) -> PricingBreakdown:
    """Rebuild the stored snapshot of a Booking row."""
    return PricingBreakdown(
        base_price=booking.base_price,
        additional_services_total=booking.additional_services_total,
        travel_expenses=booking.travel_expenses,
        security_fees=booking.security_fees,
        service_fee=booking.service_fee,
        total_price=booking.total_price,
        deposit_rate_bps=booking.deposit_rate_bps,
        deposit=booking.deposit,
        currency=booking.currency,
    )
