"""
Pydantic schemas for the managed email blacklist.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class BlacklistEntryCreate(BaseModel):
    email: EmailStr
    reason: Optional[str] = Field(None, max_length=1000)


class BlacklistEntryResponse(BaseModel):
    id: str
    email: str
    reason: Optional[str]
    added_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BlacklistResponse(BaseModel):
    entries: list[BlacklistEntryResponse]
    total: int
