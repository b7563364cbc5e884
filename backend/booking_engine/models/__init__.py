from booking_engine.models.celebrity import Celebrity, Service, ServiceAddOn, FeeTier
from booking_engine.models.booking import Booking
from booking_engine.models.interval import ReservedInterval
from booking_engine.models.risk_assessment import RiskAssessment
from booking_engine.models.blacklist import BlacklistedEmail

__all__ = [
    "Celebrity", "Service", "ServiceAddOn", "FeeTier",
    "Booking", "ReservedInterval", "RiskAssessment", "BlacklistedEmail",
]
