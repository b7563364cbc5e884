"""
Managed email blacklist consulted by the risk signal collector.

Addresses are stored lowercased so lookups and the uniqueness constraint
are case-insensitive.
"""

from sqlalchemy import Column, String, Text

from booking_engine.db.base import Base, TimestampMixin, new_id


class BlacklistedEmail(Base, TimestampMixin):
    __tablename__ = "email_blacklist"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), nullable=False, unique=True)
    reason = Column(Text, nullable=True)
    added_by = Column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<BlacklistedEmail(email={self.email}, added_by={self.added_by})>"
