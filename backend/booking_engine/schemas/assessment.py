"""
Pydantic schemas for risk assessments and the review queue.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RiskFactor(BaseModel):
    type: str
    severity: str
    description: str = ""


class AssessmentResponse(BaseModel):
    id: str
    booking_id: str
    risk_score: int
    risk_level: str
    risk_factors: list[RiskFactor]
    requires_review: bool
    auto_block: bool
    review_status: str
    reviewer_id: Optional[str]
    reviewer_notes: Optional[str]
    reviewed_at: Optional[datetime]
    is_current: bool
    superseded_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class AssessmentListResponse(BaseModel):
    assessments: list[AssessmentResponse]
    total: int
    page: int
    page_size: int


class ReviewRequest(BaseModel):
    decision: Literal["under_review", "approved", "rejected", "escalated"]
    notes: Optional[str] = Field(None, max_length=5000)


class ReviewResponse(BaseModel):
    assessment_id: str
    review_status: str
    booking_id: str
    booking_status: str
    conflicts: list[dict] = Field(default_factory=list)
