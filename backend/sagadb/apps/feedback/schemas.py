from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FeedbackCreate(BaseModel):
    # Range is checked by the service so the error matches other domain rules.
    overall_rating: int
    educational_value: int
    supervision_quality: int
    work_environment: int
    positives: Optional[str] = None
    improvements: Optional[str] = None
    other_comments: Optional[str] = None
    anonymous: bool = False


class FeedbackRead(BaseModel):
    id: str
    rotation_id: str
    overall_rating: int
    educational_value: int
    supervision_quality: int
    work_environment: int
    positives: Optional[str] = None
    improvements: Optional[str] = None
    other_comments: Optional[str] = None
    anonymous: bool
    submitted_at: datetime

    class Config:
        from_attributes = True


class RotationFeedbackView(FeedbackRead):
    unit: str
    start_date: date
    end_date: date
    trainee_name: Optional[str] = None


class UnitStatistics(BaseModel):
    unit: str
    response_count: int
    average_overall: float
    average_educational: float
    average_supervision: float
    average_environment: float


class FeedbackStatistics(BaseModel):
    total_responses: int
    by_unit: List[UnitStatistics] = Field(default_factory=list)


class PendingRotation(BaseModel):
    id: str
    unit: str
    start_date: date
    end_date: date

    class Config:
        from_attributes = True


class PendingFeedback(BaseModel):
    pending_feedback: List[PendingRotation] = Field(default_factory=list)
