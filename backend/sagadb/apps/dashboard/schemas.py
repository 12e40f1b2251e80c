from __future__ import annotations

from datetime import date, date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sagadb.apps.assessments.models import AssessmentType
from sagadb.apps.subgoals.schemas import ProgressSummary, RotationBrief
from sagadb.apps.trainees.models import TrackType
from sagadb.apps.trainees.schemas import PersonBrief, TraineeRead

from .services import RiskLevel


class DashboardWarning(BaseModel):
    type: str
    message: str
    severity: RiskLevel


class RecentAssessment(BaseModel):
    id: str
    type: AssessmentType
    date: date_type
    signed_at: Optional[datetime] = None
    assessor: Optional[PersonBrief] = None

    class Config:
        from_attributes = True


class LastSupervision(BaseModel):
    id: str
    date: date_type
    signed_at: Optional[datetime] = None
    supervisor: Optional[PersonBrief] = None

    class Config:
        from_attributes = True


class TraineeDashboard(BaseModel):
    profile: TraineeRead
    progress: ProgressSummary
    current_rotation: Optional[RotationBrief] = None
    upcoming_rotations: List[RotationBrief] = Field(default_factory=list)
    recent_rotations: List[RotationBrief] = Field(default_factory=list)
    recent_assessments: List[RecentAssessment] = Field(default_factory=list)
    unsigned_assessments: int
    last_supervision: Optional[LastSupervision] = None
    days_since_last_supervision: Optional[int] = None
    certificates_count: int
    warnings: List[DashboardWarning] = Field(default_factory=list)


class TraineeOverviewRow(BaseModel):
    trainee_profile_id: str
    name: str
    email: str
    track_type: TrackType
    specialty: Optional[str] = None
    supervisor: Optional[PersonBrief] = None
    start_date: date
    planned_end_date: date
    progress_percentage: int
    completed_sub_goals: int
    total_sub_goals: int
    last_supervision_date: Optional[date] = None
    days_since_supervision: Optional[int] = None
    unsigned_assessments: int
    risk_level: RiskLevel


class OverviewSummary(BaseModel):
    total_trainees: int
    high_risk: int
    medium_risk: int
    average_progress: int


class ClinicOverview(BaseModel):
    clinic_id: Optional[str] = None
    summary: OverviewSummary
    trainees: List[TraineeOverviewRow] = Field(default_factory=list)
