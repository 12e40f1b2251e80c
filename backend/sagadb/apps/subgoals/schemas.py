from __future__ import annotations

from datetime import date, date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from sagadb.apps.assessments.models import AssessmentType
from sagadb.apps.certificates.models import CertificateType
from sagadb.apps.policy.locks import RecordState
from sagadb.apps.trainees.models import TrackType

from .models import SubGoalCategory, SubGoalStatus


class GoalSpecRead(BaseModel):
    id: str
    name: str
    track_type: TrackType
    specialty: Optional[str] = None
    version: str
    source_url: Optional[str] = None
    created_at: datetime
    sub_goal_count: int = 0

    class Config:
        from_attributes = True


class SubGoalRead(BaseModel):
    id: str
    goal_spec_id: str
    code: str
    title: str
    description: Optional[str] = None
    category: SubGoalCategory
    sort_order: int

    class Config:
        from_attributes = True


class SubGoalBrief(BaseModel):
    id: str
    code: str
    title: str

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# EVIDENCE
# ---------------------------------------------------------------------------


class RotationBrief(BaseModel):
    id: str
    unit: str
    start_date: date
    end_date: date
    planned: bool

    class Config:
        from_attributes = True


class CourseBrief(BaseModel):
    id: str
    title: str
    start_date: date
    end_date: Optional[date] = None

    class Config:
        from_attributes = True


class AssessmentBrief(BaseModel):
    id: str
    type: AssessmentType
    date: date_type
    signed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CertificateBrief(BaseModel):
    id: str
    type: CertificateType
    title: Optional[str] = None
    file_name: str

    class Config:
        from_attributes = True


class Evidence(BaseModel):
    rotations: List[RotationBrief] = Field(default_factory=list)
    courses: List[CourseBrief] = Field(default_factory=list)
    assessments: List[AssessmentBrief] = Field(default_factory=list)
    certificates: List[CertificateBrief] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# PROGRESS
# ---------------------------------------------------------------------------


class ProgressRead(BaseModel):
    id: str
    trainee_profile_id: str
    sub_goal_id: str
    status: SubGoalStatus
    notes: Optional[str] = None
    signed_by_id: Optional[str] = None
    signed_at: Optional[datetime] = None
    state: RecordState
    sub_goal: SubGoalRead

    class Config:
        from_attributes = True


class ProgressWithEvidence(ProgressRead):
    evidence: Evidence = Field(default_factory=Evidence)


class ProgressUpdate(BaseModel):
    status: Optional[SubGoalStatus] = None
    notes: Optional[str] = None


class CategoryProgress(BaseModel):
    category: SubGoalCategory
    total: int
    completed: int
    percentage: int


class ProgressSummary(BaseModel):
    total: int
    completed: int
    in_progress: int
    not_started: int
    percentage: int
    by_category: List[CategoryProgress] = Field(default_factory=list)
