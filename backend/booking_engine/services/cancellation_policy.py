"""
Cancellation / refund policy evaluator.

Refund depends only on how long before the event the cancellation happens:

    now <= event_start - FREE_CANCELLATION_DAYS   -> 100%
    now <= event_start - PARTIAL_REFUND_DAYS      -> PARTIAL_REFUND_PERCENT
    later                                         -> 0% (not eligible)

Window ends are inclusive. Amounts are rounded down to the minor unit.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import ValidationError

WINDOW_FREE = "free"
WINDOW_PARTIAL = "partial"
WINDOW_NONE = "none"


@dataclass(frozen=True)
class CancellationWindows:
    free_window_end: datetime
    partial_refund_window_end: datetime
    partial_refund_percentage: int
    no_refund_after: datetime


@dataclass(frozen=True)
class RefundDecision:
    eligible: bool
    amount: int
    percentage: int
    window: str

    def capped(self, collected: int) -> "RefundDecision":
        """Never refund more than was actually collected."""
        if collected <= 0:
            return RefundDecision(eligible=False, amount=0, percentage=0, window=self.window)
        return RefundDecision(
            eligible=self.eligible,
            amount=min(self.amount, collected),
            percentage=self.percentage,
            window=self.window,
        )


@dataclass(frozen=True)
class CancellationPolicy:
    free_window: timedelta
    partial_window: timedelta
    partial_refund_percentage: int

    def __post_init__(self):
        if self.partial_window > self.free_window:
            raise ValueError("partial refund window must close after the free window")
        if not 0 <= self.partial_refund_percentage <= 100:
            raise ValueError("partial refund percentage must be within 0..100")

    @classmethod
    def from_settings(cls) -> "CancellationPolicy":
        settings = get_settings()
        return cls(
            free_window=timedelta(days=settings.FREE_CANCELLATION_DAYS),
            partial_window=timedelta(days=settings.PARTIAL_REFUND_DAYS),
            partial_refund_percentage=settings.PARTIAL_REFUND_PERCENT,
        )

    def windows(self, event_start: datetime) -> CancellationWindows:
        partial_end = event_start - self.partial_window
        return CancellationWindows(
            free_window_end=event_start - self.free_window,
            partial_refund_window_end=partial_end,
            partial_refund_percentage=self.partial_refund_percentage,
            no_refund_after=partial_end,
        )

    def evaluate(self, event_start: datetime, now: datetime, total_price: int) -> RefundDecision:
        if total_price < 0:
            raise ValidationError("total price must not be negative", field="total_price")

        windows = self.windows(event_start)
        if now <= windows.free_window_end:
            percentage, window = 100, WINDOW_FREE
        elif now <= windows.partial_refund_window_end:
            percentage, window = self.partial_refund_percentage, WINDOW_PARTIAL
        else:
            percentage, window = 0, WINDOW_NONE

        amount = total_price * percentage // 100
        return RefundDecision(
            eligible=percentage > 0,
            amount=amount,
            percentage=percentage,
            window=window,
        )
