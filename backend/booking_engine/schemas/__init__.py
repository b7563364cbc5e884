from booking_engine.schemas.catalog import (
    CelebrityCreate, CelebrityResponse, ServiceCreate, ServiceResponse, ServiceListResponse,
    FeeTierCreate, FeeTierResponse,
)
from booking_engine.schemas.booking import (
    BookingCreate, BookingAmend, BookingResponse, BookingCreatedResponse, BookingListResponse,
    ConfirmRequest, ConfirmResponse, CancelRequest, CancelResponse,
)
from booking_engine.schemas.assessment import AssessmentResponse, ReviewRequest, ReviewResponse
from booking_engine.schemas.availability import AvailabilityResponse

__all__ = [
    "CelebrityCreate", "CelebrityResponse", "ServiceCreate", "ServiceResponse", "ServiceListResponse",
    "FeeTierCreate", "FeeTierResponse",
    "BookingCreate", "BookingAmend", "BookingResponse", "BookingCreatedResponse", "BookingListResponse",
    "ConfirmRequest", "ConfirmResponse", "CancelRequest", "CancelResponse",
    "AssessmentResponse", "ReviewRequest", "ReviewResponse",
    "AvailabilityResponse",
]
