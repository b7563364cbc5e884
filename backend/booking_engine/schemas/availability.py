"""
Pydantic schemas for calendar availability checks.
"""

from datetime import datetime

from pydantic import BaseModel


class ConflictResponse(BaseModel):
    booking_id: str
    confirmation_code: str
    start: datetime
    end: datetime
    status: str


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


class AvailabilityResponse(BaseModel):
    celebrity_id: str
    event_start: datetime
    event_end: datetime
    available: bool
    conflicts: list[ConflictResponse]
    alternative_slots: list[SlotResponse]
