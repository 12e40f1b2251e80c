from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sagadb.apps.subgoals.schemas import SubGoalBrief

from .models import CertificateType


class CertificateUpdate(BaseModel):
    type: Optional[CertificateType] = None
    title: Optional[str] = Field(default=None, max_length=255)
    issue_date: Optional[date] = None
    issuer: Optional[str] = Field(default=None, max_length=255)
    parsed_fields: Optional[Dict[str, Any]] = None
    sub_goal_ids: Optional[List[str]] = None


class CertificateRead(BaseModel):
    id: str
    trainee_profile_id: str
    type: CertificateType
    title: Optional[str] = None
    issue_date: Optional[date] = None
    issuer: Optional[str] = None
    file_name: str
    mime_type: str
    file_size: int
    parsed_fields: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    sub_goals: List[SubGoalBrief] = Field(default_factory=list)

    class Config:
        from_attributes = True
