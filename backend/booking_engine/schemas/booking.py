"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class ClientContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)


class BookingCreate(BaseModel):
    celebrity_id: str
    service_id: str
    event_start: datetime
    event_duration_minutes: int = Field(..., gt=0, le=24 * 60)
    event_type: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    attendees: Optional[int] = Field(None, gt=0)
    special_requests: Optional[str] = Field(None, max_length=2000)
    client_contact: ClientContact
    budget: Optional[int] = Field(None, ge=0)
    additional_service_ids: list[str] = Field(default_factory=list)
    distance_tier: str = Field(..., min_length=1, max_length=50)
    security_tier: str = Field(..., min_length=1, max_length=50)
    terms_accepted: bool = False


class BookingAmend(BaseModel):
    """Slot fields may change in draft or pending; priced fields only in draft."""

    event_start: Optional[datetime] = None
    event_duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    additional_service_ids: Optional[list[str]] = None
    distance_tier: Optional[str] = Field(None, min_length=1, max_length=50)
    security_tier: Optional[str] = Field(None, min_length=1, max_length=50)


class PricingResponse(BaseModel):
    base_price: int
    additional_services_total: int
    travel_expenses: int
    security_fees: int
    service_fee: int
    total_price: int
    deposit_rate_bps: int
    deposit_rate: float
    deposit: int
    balance: int
    currency: str


class BookingCreatedResponse(BaseModel):
    booking_id: str
    confirmation_code: str
    status: str
    pricing: PricingResponse


class RefundResponse(BaseModel):
    eligible: Optional[bool]
    percentage: Optional[int]
    amount: Optional[int]
    status: Optional[str]


class CancellationResponse(BaseModel):
    reason: Optional[str]
    cancelled_at: datetime
    cancelled_by: Optional[str]
    refund: RefundResponse


class BookingResponse(BaseModel):
    id: str
    confirmation_code: str
    celebrity_id: str
    service_id: str
    client_id: str
    event_start: datetime
    event_end: datetime
    event_duration_minutes: int
    event_type: Optional[str]
    location: Optional[str]
    attendees: Optional[int]
    special_requests: Optional[str]
    client_contact: ClientContact
    budget: Optional[int]
    additional_service_ids: list[str]
    distance_tier: str
    security_tier: str
    pricing: PricingResponse
    status: str
    payment_state: str
    amount_paid: int
    rejection_reason: Optional[str]
    cancellation: Optional[CancellationResponse]
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class ConfirmRequest(BaseModel):
    payment_method_ref: Optional[str] = Field(None, min_length=1, max_length=255)


class ConfirmResponse(BaseModel):
    booking_id: str
    status: str
    payment_state: str
    risk_level: Optional[str] = None
    assessment_id: Optional[str] = None
    review_eta: Optional[datetime] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class CancelResponse(BaseModel):
    booking_id: str
    status: str
    refund: RefundResponse
    refund_window: str


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BalanceRequest(BaseModel):
    payment_method_ref: str = Field(..., min_length=1, max_length=255)


class ScheduleAdvanceRequest(BaseModel):
    as_of: Optional[datetime] = None


class ScheduleAdvanceResponse(BaseModel):
    as_of: datetime
    started: list[str]
    completed: list[str]
