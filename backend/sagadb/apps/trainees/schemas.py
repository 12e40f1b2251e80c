from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from sagadb.apps.accounts.schemas import MIN_PASSWORD_LENGTH

from .models import TrackType


class PersonBrief(BaseModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class ClinicBrief(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class TraineeCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=2, max_length=255)
    track_type: TrackType
    specialty: Optional[str] = None
    clinic_id: Optional[str] = None
    supervisor_id: Optional[str] = None
    start_date: date
    planned_end_date: date


class TraineeUpdate(BaseModel):
    track_type: Optional[TrackType] = None
    specialty: Optional[str] = None
    clinic_id: Optional[str] = None
    supervisor_id: Optional[str] = None
    start_date: Optional[date] = None
    planned_end_date: Optional[date] = None


class TraineeRead(BaseModel):
    id: str
    user_id: str
    track_type: TrackType
    specialty: Optional[str] = None
    clinic_id: Optional[str] = None
    supervisor_id: Optional[str] = None
    start_date: date
    planned_end_date: date
    created_at: datetime
    updated_at: datetime

    user: PersonBrief
    clinic: Optional[ClinicBrief] = None
    supervisor: Optional[PersonBrief] = None

    class Config:
        from_attributes = True
