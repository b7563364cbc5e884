"""
Domain error taxonomy.

Services raise these instead of HTTPException; a single handler in main.py
renders them. Every error is local to one booking or assessment.
"""

from typing import Any, Optional


class BookingEngineError(Exception):
    code = "booking_engine_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, **self.context}


class ValidationError(BookingEngineError):
    """Malformed or missing input, raised before any side effect."""

    code = "validation_error"
    status_code = 422


class NotFound(BookingEngineError):
    code = "not_found"
    status_code = 404


class ServiceNotFound(NotFound):
    code = "service_not_found"


class PermissionDenied(BookingEngineError):
    code = "permission_denied"
    status_code = 403


class PaymentRequired(BookingEngineError):
    code = "payment_required"
    status_code = 402


class ConflictError(BookingEngineError):
    """Requested window overlaps an active booking for the same celebrity."""

    code = "interval_conflict"
    status_code = 409

    def __init__(self, message: str, conflicts: list[dict]):
        super().__init__(message, conflicts=conflicts)
        self.conflicts = conflicts


class InvalidTransition(BookingEngineError):
    code = "invalid_transition"
    status_code = 409

    def __init__(
        self,
        current_status: str,
        allowed_actions: list[str],
        attempted: Optional[str] = None,
        message: Optional[str] = None,
    ):
        message = message or f"Cannot {attempted or 'transition'} a booking in status '{current_status}'"
        super().__init__(
            message,
            current_status=current_status,
            allowed_actions=allowed_actions,
        )
        self.current_status = current_status
        self.allowed_actions = allowed_actions


class RiskBlocked(BookingEngineError):
    code = "risk_blocked"
    status_code = 409


class AlreadyConfirmed(BookingEngineError):
    code = "already_confirmed"
    status_code = 409


class AlreadyResolved(BookingEngineError):
    code = "already_resolved"
    status_code = 409


class ConcurrentModification(BookingEngineError):
    """Version compare-and-swap kept failing; caller may retry the request."""

    code = "concurrent_modification"
    status_code = 409


class ReservationBusy(BookingEngineError):
    """Per-celebrity lock could not be acquired in time."""

    code = "reservation_busy"
    status_code = 503


class AlreadyExists(BookingEngineError):
    code = "already_exists"
    status_code = 409
