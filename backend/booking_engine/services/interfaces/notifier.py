"""
Notification interface.
The engine hands events over; delivery (email, chat, dashboards) is the
notification subsystem's job.
"""

from abc import ABC, abstractmethod

BOOKING_CONFIRMED = "booking.confirmed"
BOOKING_CANCELLED = "booking.cancelled"
BOOKING_REJECTED = "booking.rejected"
RISK_ALERT = "risk.alert"


class Notifier(ABC):
    @abstractmethod
    async def publish(self, event_type: str, payload: dict) -> None:
        pass
