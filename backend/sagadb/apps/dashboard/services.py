# backend/sagadb/apps/dashboard/services.py

"""
Read-only aggregates for the dashboards.

Every figure that involves supervision uses the latest *active* meeting;
voided meetings never count as "last supervision".
"""

from __future__ import annotations

import enum
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.certificates import models as certificate_models
from sagadb.apps.policy.errors import Forbidden
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.subgoals import services as subgoal_services
from sagadb.apps.supervision import services as supervision_services
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import days_between, utcnow

OLD_SUPERVISION_DAYS = 90
STALE_SUPERVISION_DAYS = 180
ENDING_ROTATION_DAYS = 14
MANY_UNSIGNED_ASSESSMENTS = 5
# Stands in for "never supervised" when grading risk.
NO_SUPERVISION_DAYS = 999


class RiskLevel(str, enum.Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_RISK_ORDER = {RiskLevel.HIGH: 0, RiskLevel.MEDIUM: 1, RiskLevel.LOW: 2, RiskLevel.NONE: 3}


def risk_level(days_since_supervision: int, unsigned_assessments: int) -> RiskLevel:
    if days_since_supervision > STALE_SUPERVISION_DAYS or unsigned_assessments > 10:
        return RiskLevel.HIGH
    if days_since_supervision > OLD_SUPERVISION_DAYS or unsigned_assessments > MANY_UNSIGNED_ASSESSMENTS:
        return RiskLevel.MEDIUM
    if days_since_supervision > 60 or unsigned_assessments > 2:
        return RiskLevel.LOW
    return RiskLevel.NONE


def count_unsigned_assessments(db: Session, trainee_profile_id: str) -> int:
    return (
        db.query(assessment_models.Assessment)
        .filter(
            assessment_models.Assessment.trainee_profile_id == trainee_profile_id,
            assessment_models.Assessment.signed_at.is_(None),
        )
        .count()
    )


def _days_since_supervision(db: Session, trainee_profile_id: str, today: date):
    meeting = supervision_services.last_active_meeting(db, trainee_profile_id)
    if meeting is None:
        return None, None
    return meeting, days_between(meeting.date, today)


def build_warnings(
    *,
    days_since_supervision: Optional[int],
    unsigned_assessments: int,
    current_rotation: Optional[rotation_models.Rotation],
    today: date,
) -> List[dict]:
    warnings: List[dict] = []

    if days_since_supervision is None:
        warnings.append(
            {
                "type": "OLD_SUPERVISION",
                "message": "Inget handledarsamtal registrerat",
                "severity": RiskLevel.HIGH,
            }
        )
    elif days_since_supervision > OLD_SUPERVISION_DAYS:
        warnings.append(
            {
                "type": "OLD_SUPERVISION",
                "message": f"Senaste handledarsamtalet var för {days_since_supervision} dagar sedan",
                "severity": (
                    RiskLevel.HIGH
                    if days_since_supervision > STALE_SUPERVISION_DAYS
                    else RiskLevel.MEDIUM
                ),
            }
        )

    if unsigned_assessments > 0:
        warnings.append(
            {
                "type": "UNSIGNED_ASSESSMENTS",
                "message": f"{unsigned_assessments} osignerad(e) bedömning(ar)",
                "severity": (
                    RiskLevel.MEDIUM
                    if unsigned_assessments > MANY_UNSIGNED_ASSESSMENTS
                    else RiskLevel.LOW
                ),
            }
        )

    if current_rotation is not None:
        days_until_end = (current_rotation.end_date - today).days
        if 0 < days_until_end <= ENDING_ROTATION_DAYS:
            warnings.append(
                {
                    "type": "ENDING_ROTATION",
                    "message": f"Nuvarande placering slutar om {days_until_end} dagar",
                    "severity": RiskLevel.LOW,
                }
            )
    return warnings


def trainee_dashboard(
    db: Session,
    profile: trainee_models.TraineeProfile,
    *,
    today: Optional[date] = None,
) -> dict:
    today = today or utcnow().date()
    Rotation = rotation_models.Rotation
    rotations = db.query(Rotation).filter(Rotation.trainee_profile_id == profile.id)

    current_rotation = (
        rotations.filter(
            Rotation.planned.is_(False),
            Rotation.start_date <= today,
            Rotation.end_date >= today,
        )
        .order_by(Rotation.start_date.desc())
        .first()
    )
    upcoming = rotations.filter(Rotation.start_date > today).order_by(Rotation.start_date.asc()).limit(3).all()
    recent = (
        rotations.filter(Rotation.planned.is_(False), Rotation.end_date < today)
        .order_by(Rotation.end_date.desc())
        .limit(3)
        .all()
    )
    recent_assessments = (
        db.query(assessment_models.Assessment)
        .filter(assessment_models.Assessment.trainee_profile_id == profile.id)
        .order_by(assessment_models.Assessment.date.desc())
        .limit(5)
        .all()
    )

    unsigned = count_unsigned_assessments(db, profile.id)
    last_meeting, days_since = _days_since_supervision(db, profile.id, today)
    certificates_count = (
        db.query(certificate_models.Certificate)
        .filter(certificate_models.Certificate.trainee_profile_id == profile.id)
        .count()
    )

    return {
        "profile": profile,
        "progress": subgoal_services.progress_summary(db, profile.id),
        "current_rotation": current_rotation,
        "upcoming_rotations": upcoming,
        "recent_rotations": recent,
        "recent_assessments": recent_assessments,
        "unsigned_assessments": unsigned,
        "last_supervision": last_meeting,
        "days_since_last_supervision": days_since,
        "certificates_count": certificates_count,
        "warnings": build_warnings(
            days_since_supervision=days_since,
            unsigned_assessments=unsigned,
            current_rotation=current_rotation,
            today=today,
        ),
    }


def _trainee_row(db: Session, profile: trainee_models.TraineeProfile, today: date) -> dict:
    summary = subgoal_services.progress_summary(db, profile.id)
    last_meeting, days_since = _days_since_supervision(db, profile.id, today)
    unsigned = count_unsigned_assessments(db, profile.id)
    effective_days = days_since if days_since is not None else NO_SUPERVISION_DAYS
    return {
        "trainee_profile_id": profile.id,
        "name": profile.user.name,
        "email": profile.user.email,
        "track_type": profile.track_type,
        "specialty": profile.specialty,
        "supervisor": profile.supervisor,
        "start_date": profile.start_date,
        "planned_end_date": profile.planned_end_date,
        "progress_percentage": summary["percentage"],
        "completed_sub_goals": summary["completed"],
        "total_sub_goals": summary["total"],
        "last_supervision_date": last_meeting.date if last_meeting else None,
        "days_since_supervision": days_since,
        "unsigned_assessments": unsigned,
        "risk_level": risk_level(effective_days, unsigned),
    }


def clinic_overview(
    db: Session,
    requester: User,
    *,
    clinic_id: Optional[str] = None,
    today: Optional[date] = None,
) -> dict:
    """Study directors see their own clinic; admins any clinic, or all trainees."""
    today = today or utcnow().date()
    if requester.role == AccountRole.STUDY_DIRECTOR:
        if clinic_id and clinic_id != requester.clinic_id:
            raise Forbidden("Study directors can only view their own clinic")
        clinic_id = requester.clinic_id
        if clinic_id is None:
            raise Forbidden("No clinic assigned")
    elif requester.role != AccountRole.ADMIN:
        raise Forbidden()

    query = db.query(trainee_models.TraineeProfile)
    if clinic_id:
        query = query.filter(trainee_models.TraineeProfile.clinic_id == clinic_id)
    rows = [_trainee_row(db, profile, today) for profile in query.all()]
    rows.sort(key=lambda row: _RISK_ORDER[row["risk_level"]])

    count = len(rows)
    return {
        "clinic_id": clinic_id,
        "summary": {
            "total_trainees": count,
            "high_risk": sum(1 for row in rows if row["risk_level"] == RiskLevel.HIGH),
            "medium_risk": sum(1 for row in rows if row["risk_level"] == RiskLevel.MEDIUM),
            "average_progress": (
                subgoal_services.calculate_progress_percentage(
                    sum(row["progress_percentage"] for row in rows), count * 100
                )
                if count
                else 0
            ),
        },
        "trainees": rows,
    }


def supervisor_overview(db: Session, supervisor: User, *, today: Optional[date] = None) -> List[dict]:
    today = today or utcnow().date()
    profiles = (
        db.query(trainee_models.TraineeProfile)
        .filter(trainee_models.TraineeProfile.supervisor_id == supervisor.id)
        .all()
    )
    return [_trainee_row(db, profile, today) for profile in profiles]
