"""
Reserved calendar interval: the slot an admitted booking occupies.

Key design decisions:
- Half-open [start_at, end_at) so back-to-back appearances do not collide
- One row per active booking (unique booking_id), deleted on release
- Composite index on (celebrity_id, start_at) serves the overlap range query
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String

from booking_engine.db.base import Base, UTCDateTime, utcnow


class ReservedInterval(Base):
    __tablename__ = "reserved_intervals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    celebrity_id = Column(String(36), ForeignKey("celebrities.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, unique=True)
    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_interval_non_empty"),
        Index("ix_intervals_celebrity_start", "celebrity_id", "start_at"),
    )

    def __repr__(self) -> str:
        return f"<ReservedInterval(celebrity={self.celebrity_id}, booking={self.booking_id}, [{self.start_at}, {self.end_at}))>"
