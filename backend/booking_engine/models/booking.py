"""
Booking model: one requested appearance of a celebrity.

Key design decisions:
- Status and payment state are tracked separately, both as CHECK-guarded strings
- Pricing columns are a frozen snapshot of the quote; balance is derived
- `version` column enables optimistic compare-and-swap on every transition
- Cancellation is a terminal status with its own columns, never a delete
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
)

from booking_engine.db.base import Base, TimestampMixin, UTCDateTime, new_id
from booking_engine.models.enums import BookingStatus, PaymentState, sql_in
from booking_engine.services.pricing_service import breakdown_of


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    confirmation_code = Column(String(16), nullable=False, unique=True)
    celebrity_id = Column(String(36), ForeignKey("celebrities.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    client_id = Column(String(64), nullable=False, index=True)

    # Event window, half-open [event_start, event_end)
    event_start = Column(UTCDateTime(), nullable=False)
    event_end = Column(UTCDateTime(), nullable=False)
    event_duration_minutes = Column(Integer, nullable=False)
    event_type = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True)
    attendees = Column(Integer, nullable=True)
    special_requests = Column(String(2000), nullable=True)

    # Client contact
    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False, index=True)
    contact_phone = Column(String(50), nullable=True)
    budget = Column(Integer, nullable=True)
    terms_accepted = Column(Boolean, nullable=False, default=False)

    # Quote inputs, kept so a draft can be re-priced
    additional_service_ids = Column(JSON, nullable=False, default=list)
    distance_tier = Column(String(50), nullable=False)
    security_tier = Column(String(50), nullable=False)

    # Pricing snapshot
    base_price = Column(Integer, nullable=False)
    additional_services_total = Column(Integer, nullable=False, default=0)
    travel_expenses = Column(Integer, nullable=False, default=0)
    security_fees = Column(Integer, nullable=False, default=0)
    service_fee = Column(Integer, nullable=False, default=0)
    total_price = Column(Integer, nullable=False)
    deposit_rate_bps = Column(Integer, nullable=False)
    deposit = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(String(20), nullable=False, default=BookingStatus.DRAFT.value)
    payment_state = Column(String(20), nullable=False, default=PaymentState.PENDING.value)
    amount_paid = Column(Integer, nullable=False, default=0)
    payment_reference = Column(String(100), nullable=True)
    rejection_reason = Column(String(1000), nullable=True)

    cancellation_reason = Column(String(1000), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    refund_eligible = Column(Boolean, nullable=True)
    refund_percentage = Column(Integer, nullable=True)
    refund_amount = Column(Integer, nullable=True)
    refund_status = Column(String(20), nullable=True)  # issued, failed, not_required

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in(BookingStatus)})", name="check_booking_status"),
        CheckConstraint(f"payment_state IN ({sql_in(PaymentState)})", name="check_booking_payment_state"),
        CheckConstraint("event_duration_minutes > 0", name="check_booking_duration_positive"),
        CheckConstraint(
            "total_price = base_price + additional_services_total + travel_expenses"
            " + security_fees + service_fee",
            name="check_booking_total_is_sum",
        ),
        CheckConstraint("deposit >= 0 AND deposit <= total_price", name="check_booking_deposit_bounds"),
        Index("ix_bookings_celebrity_start", "celebrity_id", "event_start"),
        Index("ix_bookings_status_start", "status", "event_start"),
    )

    @property
    def balance(self) -> int:
        return self.total_price - self.deposit

    @property
    def pricing(self) -> dict:
        return breakdown_of(self).as_dict()

    @property
    def client_contact(self) -> dict:
        return {"name": self.contact_name, "email": self.contact_email, "phone": self.contact_phone}

    @property
    def cancellation(self) -> dict | None:
        if self.cancelled_at is None:
            return None
        return {
            "reason": self.cancellation_reason,
            "cancelled_at": self.cancelled_at,
            "cancelled_by": self.cancelled_by,
            "refund": {
                "eligible": self.refund_eligible,
                "percentage": self.refund_percentage,
                "amount": self.refund_amount,
                "status": self.refund_status,
            },
        }

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, code={self.confirmation_code}, status={self.status})>"
