"""Initial schema: catalog, bookings, reserved intervals, risk assessments.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BOOKING_STATUSES = "'draft', 'pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'rejected'"
PAYMENT_STATES = "'pending', 'processing', 'deposit_paid', 'paid_in_full', 'refunded', 'failed'"
RISK_LEVELS = "'LOW', 'MEDIUM', 'HIGH'"
REVIEW_STATUSES = "'pending', 'under_review', 'approved', 'rejected', 'escalated'"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Catalog
    op.create_table(
        "celebrities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("deposit_rate_bps", sa.Integer(), nullable=True),
        sa.Column("typical_fee_min", sa.Integer(), nullable=True),
        sa.Column("typical_fee_max", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "deposit_rate_bps IS NULL OR (deposit_rate_bps >= 0 AND deposit_rate_bps <= 10000)",
            name="check_celebrity_deposit_rate",
        ),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("celebrity_id", sa.String(36), sa.ForeignKey("celebrities.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("base_price >= 0", name="check_service_base_price_non_negative"),
    )
    op.create_index("ix_services_celebrity_id", "services", ["celebrity_id"])

    op.create_table(
        "service_add_ons",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_add_on_price_non_negative"),
    )
    op.create_index("ix_service_add_ons_service_id", "service_add_ons", ["service_id"])

    op.create_table(
        "fee_tiers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("kind", "code", name="uq_fee_tier_kind_code"),
        sa.CheckConstraint("amount >= 0", name="check_fee_tier_amount_non_negative"),
        sa.CheckConstraint("kind IN ('travel', 'security')", name="check_fee_tier_kind"),
    )

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("confirmation_code", sa.String(16), nullable=False),
        sa.Column("celebrity_id", sa.String(36), sa.ForeignKey("celebrities.id"), nullable=False),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("event_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("attendees", sa.Integer(), nullable=True),
        sa.Column("special_requests", sa.String(2000), nullable=True),
        sa.Column("contact_name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("budget", sa.Integer(), nullable=True),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("additional_service_ids", sa.JSON(), nullable=False),
        sa.Column("distance_tier", sa.String(50), nullable=False),
        sa.Column("security_tier", sa.String(50), nullable=False),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("additional_services_total", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("travel_expenses", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("security_fees", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("service_fee", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("deposit_rate_bps", sa.Integer(), nullable=False),
        sa.Column("deposit", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("payment_state", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("amount_paid", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("rejection_reason", sa.String(1000), nullable=True),
        sa.Column("cancellation_reason", sa.String(1000), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        sa.Column("refund_eligible", sa.Boolean(), nullable=True),
        sa.Column("refund_percentage", sa.Integer(), nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=True),
        sa.Column("refund_status", sa.String(20), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("confirmation_code", name="uq_bookings_confirmation_code"),
        sa.CheckConstraint(f"status IN ({BOOKING_STATUSES})", name="check_booking_status"),
        sa.CheckConstraint(f"payment_state IN ({PAYMENT_STATES})", name="check_booking_payment_state"),
        sa.CheckConstraint("event_duration_minutes > 0", name="check_booking_duration_positive"),
        # Pricing snapshot must always add up; balance is derived, never stored
        sa.CheckConstraint(
            "total_price = base_price + additional_services_total + travel_expenses"
            " + security_fees + service_fee",
            name="check_booking_total_is_sum",
        ),
        sa.CheckConstraint("deposit >= 0 AND deposit <= total_price", name="check_booking_deposit_bounds"),
    )
    op.create_index("ix_bookings_celebrity_id", "bookings", ["celebrity_id"])
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_contact_email", "bookings", ["contact_email"])
    op.create_index("ix_bookings_celebrity_start", "bookings", ["celebrity_id", "event_start"])
    # Serves the schedule sweep: WHERE status = ... AND event_start <= now
    op.create_index("ix_bookings_status_start", "bookings", ["status", "event_start"])

    # Calendar
    op.create_table(
        "reserved_intervals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("celebrity_id", sa.String(36), sa.ForeignKey("celebrities.id"), nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("booking_id", name="uq_reserved_intervals_booking_id"),
        sa.CheckConstraint("end_at > start_at", name="check_interval_non_empty"),
    )
    # Overlap query: WHERE celebrity_id = :c AND start_at < :end AND end_at > :start
    op.create_index("ix_intervals_celebrity_start", "reserved_intervals", ["celebrity_id", "start_at"])

    # Risk
    op.create_table(
        "risk_assessments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("risk_level", sa.String(10), nullable=False),
        sa.Column("risk_factors", sa.JSON(), nullable=False),
        sa.Column("requires_review", sa.Boolean(), nullable=False),
        sa.Column("auto_block", sa.Boolean(), nullable=False),
        sa.Column("review_status", sa.String(20), nullable=False),
        sa.Column("reviewer_id", sa.String(64), nullable=True),
        sa.Column("reviewer_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("risk_score >= 0 AND risk_score <= 100", name="check_risk_score_range"),
        sa.CheckConstraint(f"risk_level IN ({RISK_LEVELS})", name="check_risk_level"),
        sa.CheckConstraint(f"review_status IN ({REVIEW_STATUSES})", name="check_review_status"),
    )
    op.create_index("ix_risk_assessments_booking_current", "risk_assessments", ["booking_id", "is_current"])
    op.create_index("ix_risk_assessments_review_status", "risk_assessments", ["review_status"])


def downgrade() -> None:
    op.drop_table("risk_assessments")
    op.drop_table("reserved_intervals")
    op.drop_table("bookings")
    op.drop_table("fee_tiers")
    op.drop_table("service_add_ons")
    op.drop_table("services")
    op.drop_table("celebrities")
