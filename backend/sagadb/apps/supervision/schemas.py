from __future__ import annotations

# Aliased: the meeting carries a column named `date`.
from datetime import date as date_type, datetime
from typing import Optional

from pydantic import BaseModel, Field

from sagadb.apps.policy.locks import RecordState
from sagadb.apps.trainees.schemas import PersonBrief


class MeetingBase(BaseModel):
    date: date_type
    notes: Optional[str] = None
    agreed_actions: Optional[str] = None
    supervisor_id: Optional[str] = None


class MeetingCreate(MeetingBase):
    trainee_profile_id: str


class MeetingUpdate(BaseModel):
    date: Optional[date_type] = None
    notes: Optional[str] = None
    agreed_actions: Optional[str] = None
    supervisor_id: Optional[str] = None


class MeetingVoid(BaseModel):
    reason: str = Field(..., max_length=2000)


class MeetingRead(MeetingBase):
    id: str
    trainee_profile_id: str
    signed_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    voided_by_id: Optional[str] = None
    void_reason: Optional[str] = None
    state: RecordState
    supervisor: Optional[PersonBrief] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
