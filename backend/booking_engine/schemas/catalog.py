"""
Pydantic schemas for the service catalog.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class CelebrityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    available: bool = True
    deposit_rate_bps: Optional[int] = Field(None, ge=0, le=10000)
    typical_fee_min: Optional[int] = Field(None, ge=0)
    typical_fee_max: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_fee_range(self):
        if (
            self.typical_fee_min is not None
            and self.typical_fee_max is not None
            and self.typical_fee_min > self.typical_fee_max
        ):
            raise ValueError("typical_fee_min must not exceed typical_fee_max")
        return self


class CelebrityResponse(BaseModel):
    id: str
    name: str
    category: Optional[str]
    available: bool
    deposit_rate_bps: Optional[int]
    typical_fee_min: Optional[int]
    typical_fee_max: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class AddOnCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., ge=0)


class AddOnResponse(BaseModel):
    id: str
    name: str
    price: int

    model_config = {"from_attributes": True}


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    base_price: int = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    add_ons: list[AddOnCreate] = Field(default_factory=list)


class ServiceResponse(BaseModel):
    id: str
    celebrity_id: str
    name: str
    description: Optional[str]
    base_price: int
    currency: str
    active: bool
    add_ons: list[AddOnResponse]

    model_config = {"from_attributes": True}


class ServiceListResponse(BaseModel):
    services: list[ServiceResponse]
    total: int
    cached: bool = False


class FeeTierCreate(BaseModel):
    kind: Literal["travel", "security"]
    code: str = Field(..., min_length=1, max_length=50)
    amount: int = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=255)


class FeeTierResponse(BaseModel):
    id: str
    kind: str
    code: str
    amount: int
    description: Optional[str]

    model_config = {"from_attributes": True}
