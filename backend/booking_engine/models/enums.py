"""
Closed value sets shared by the models and the state machines.

Stored as plain strings (guarded by CHECK constraints); compare with the
enum members, which are str subclasses.
"""

from enum import Enum


class BookingStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PaymentState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DEPOSIT_PAID = "deposit_paid"
    PAID_IN_FULL = "paid_in_full"
    REFUNDED = "refunded"
    FAILED = "failed"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class FeeTierKind(str, Enum):
    TRAVEL = "travel"
    SECURITY = "security"


def sql_in(enum_cls) -> str:
    """Render an enum as the value list of a SQL IN (...) check."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
