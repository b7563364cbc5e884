"""
Risk assessment of a booking, computed when the booking is submitted.

Rows are never edited by the scoring engine after creation. A re-assessment
inserts a new current row and marks the previous one superseded, so the
review history stays intact.
"""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text

from booking_engine.db.base import Base, UTCDateTime, new_id, utcnow
from booking_engine.models.enums import ReviewStatus, RiskLevel, sql_in


class RiskAssessment(Base):
    __tablename__ = "risk_assessments"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False)
    risk_score = Column(Integer, nullable=False)
    risk_level = Column(String(10), nullable=False)
    risk_factors = Column(JSON, nullable=False, default=list)
    requires_review = Column(Boolean, nullable=False)
    auto_block = Column(Boolean, nullable=False)
    review_status = Column(String(20), nullable=False)
    reviewer_id = Column(String(64), nullable=True)
    reviewer_notes = Column(Text, nullable=True)
    reviewed_at = Column(UTCDateTime(), nullable=True)
    is_current = Column(Boolean, nullable=False, default=True)
    superseded_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("risk_score >= 0 AND risk_score <= 100", name="check_risk_score_range"),
        CheckConstraint(f"risk_level IN ({sql_in(RiskLevel)})", name="check_risk_level"),
        CheckConstraint(f"review_status IN ({sql_in(ReviewStatus)})", name="check_review_status"),
        Index("ix_risk_assessments_booking_current", "booking_id", "is_current"),
        Index("ix_risk_assessments_review_status", "review_status"),
    )

    def __repr__(self) -> str:
        return f"<RiskAssessment(id={self.id}, booking={self.booking_id}, level={self.risk_level}, review={self.review_status})>"
