from __future__ import annotations

# Aliased: the models carry a column named `date`.
from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sagadb.apps.policy.locks import RecordState
from sagadb.apps.subgoals.schemas import SubGoalBrief
from sagadb.apps.trainees.schemas import PersonBrief

from .models import AssessmentType


class AssessmentBase(BaseModel):
    type: AssessmentType
    date: date_type
    context: Optional[str] = None
    assessor_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    narrative_feedback: Optional[str] = None


class AssessmentCreate(AssessmentBase):
    trainee_profile_id: str
    sub_goal_ids: List[str] = Field(default_factory=list)


class AssessmentUpdate(BaseModel):
    type: Optional[AssessmentType] = None
    date: Optional[date_type] = None
    context: Optional[str] = None
    assessor_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    narrative_feedback: Optional[str] = None
    sub_goal_ids: Optional[List[str]] = None


class AssessmentRead(AssessmentBase):
    id: str
    trainee_profile_id: str
    signed_at: Optional[datetime] = None
    state: RecordState
    assessor: Optional[PersonBrief] = None
    created_at: datetime
    updated_at: datetime
    sub_goals: List[SubGoalBrief] = Field(default_factory=list)

    class Config:
        from_attributes = True
