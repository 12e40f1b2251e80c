from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sagadb.apps.subgoals.schemas import SubGoalBrief


class RotationBase(BaseModel):
    unit: str = Field(..., min_length=1, max_length=255)
    specialty_area: Optional[str] = None
    start_date: date
    end_date: date
    planned: bool = False
    supervisor_name: Optional[str] = None
    notes: Optional[str] = None


class RotationCreate(RotationBase):
    trainee_profile_id: str
    sub_goal_ids: List[str] = Field(default_factory=list)


class RotationUpdate(BaseModel):
    unit: Optional[str] = Field(default=None, min_length=1, max_length=255)
    specialty_area: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    planned: Optional[bool] = None
    supervisor_name: Optional[str] = None
    notes: Optional[str] = None
    sub_goal_ids: Optional[List[str]] = None


class RotationRead(RotationBase):
    id: str
    trainee_profile_id: str
    created_at: datetime
    updated_at: datetime
    sub_goals: List[SubGoalBrief] = Field(default_factory=list)

    class Config:
        from_attributes = True
