"""
Service catalog: celebrities, their bookable services, add-ons and the
travel/security fee tier tables.

Key design decisions:
- All prices are integer minor units (cents)
- `deposit_rate_bps` on a celebrity overrides the global deposit rate
- `typical_fee_max` feeds the budget-outlier risk signal
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from booking_engine.db.base import Base, TimestampMixin, new_id
from booking_engine.models.enums import FeeTierKind, sql_in


class Celebrity(Base, TimestampMixin):
    __tablename__ = "celebrities"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    available = Column(Boolean, nullable=False, default=True)
    deposit_rate_bps = Column(Integer, nullable=True)
    typical_fee_min = Column(Integer, nullable=True)
    typical_fee_max = Column(Integer, nullable=True)

    services = relationship("Service", back_populates="celebrity", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "deposit_rate_bps IS NULL OR (deposit_rate_bps >= 0 AND deposit_rate_bps <= 10000)",
            name="check_celebrity_deposit_rate",
        ),
    )

    def __repr__(self) -> str:
        return f"<Celebrity(id={self.id}, name={self.name}, available={self.available})>"


class Service(Base, TimestampMixin):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    celebrity_id = Column(String(36), ForeignKey("celebrities.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    base_price = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    active = Column(Boolean, nullable=False, default=True)

    celebrity = relationship("Celebrity", back_populates="services")
    add_ons = relationship("ServiceAddOn", back_populates="service", lazy="selectin")

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="check_service_base_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, base_price={self.base_price})>"


class ServiceAddOn(Base, TimestampMixin):
    __tablename__ = "service_add_ons"

    id = Column(String(36), primary_key=True, default=new_id)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)

    service = relationship("Service", back_populates="add_ons")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_add_on_price_non_negative"),
    )


class FeeTier(Base, TimestampMixin):
    __tablename__ = "fee_tiers"

    id = Column(String(36), primary_key=True, default=new_id)
    kind = Column(String(20), nullable=False)
    code = Column(String(50), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("kind", "code", name="uq_fee_tier_kind_code"),
        CheckConstraint("amount >= 0", name="check_fee_tier_amount_non_negative"),
        CheckConstraint(f"kind IN ({sql_in(FeeTierKind)})", name="check_fee_tier_kind"),
    )
