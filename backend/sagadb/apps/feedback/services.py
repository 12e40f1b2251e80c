# backend/sagadb/apps/feedback/services.py
"""
Rotation feedback.

Trainees rate their own rotations once each rotation has ended. Study
directors read the results for their clinic, per rotation, per unit or
as averages; anonymous answers are shown to them without a name.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import Forbidden, NotFound, ValidationFailed
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.rotations import services as rotation_services
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import utcnow

from . import models

RATING_FIELDS = ("overall_rating", "educational_value", "supervision_quality", "work_environment")
_TEXT_FIELDS = ("positives", "improvements", "other_comments")
_REVIEWER_ROLES = (AccountRole.STUDY_DIRECTOR, AccountRole.ADMIN)

ANONYMOUS_NAME = "Anonym"


def _snapshot(feedback: models.RotationFeedback) -> dict:
    data = {field: getattr(feedback, field) for field in RATING_FIELDS + _TEXT_FIELDS}
    data["rotation_id"] = feedback.rotation_id
    data["anonymous"] = feedback.anonymous
    return data


def _average(total: int, count: int) -> float:
    """Mean to one decimal, halves rounded up."""
    return int(total * 10 / count + 0.5) / 10


def _day_bounds(date_from: Optional[date], date_to: Optional[date]):
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = (
        datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        if date_to
        else None
    )
    return start, end


def _reviewer_clinic(actor: User) -> Optional[str]:
    """Clinic a reviewer is limited to; None means every clinic (admin)."""
    if actor.role == AccountRole.ADMIN:
        return None
    if actor.role != AccountRole.STUDY_DIRECTOR:
        raise Forbidden()
    if actor.clinic_id is None:
        raise Forbidden("No clinic assigned")
    return actor.clinic_id


def _reviewer_query(db: Session, actor: User, date_from: Optional[date], date_to: Optional[date]):
    clinic_id = _reviewer_clinic(actor)
    query = db.query(models.RotationFeedback).join(
        rotation_models.Rotation,
        rotation_models.Rotation.id == models.RotationFeedback.rotation_id,
    )
    if clinic_id is not None:
        query = query.join(
            trainee_models.TraineeProfile,
            trainee_models.TraineeProfile.id == models.RotationFeedback.trainee_profile_id,
        ).filter(trainee_models.TraineeProfile.clinic_id == clinic_id)

    start, end = _day_bounds(date_from, date_to)
    if start is not None:
        query = query.filter(models.RotationFeedback.submitted_at >= start)
    if end is not None:
        query = query.filter(models.RotationFeedback.submitted_at < end)
    return query


def _feedback_for(db: Session, rotation_id: str) -> Optional[models.RotationFeedback]:
    return (
        db.query(models.RotationFeedback)
        .filter(models.RotationFeedback.rotation_id == rotation_id)
        .first()
    )


def _view(feedback: models.RotationFeedback, *, show_name: bool) -> dict:
    rotation = feedback.rotation
    data = _snapshot(feedback)
    data.update(
        id=feedback.id,
        submitted_at=feedback.submitted_at,
        unit=rotation.unit,
        start_date=rotation.start_date,
        end_date=rotation.end_date,
        trainee_name=feedback.trainee_profile.user.name if show_name else None,
    )
    return data


def submit_feedback(
    db: Session,
    *,
    actor: User,
    rotation_id: str,
    data: dict,
    ip_address: Optional[str] = None,
    today: Optional[date] = None,
) -> models.RotationFeedback:
    rotation = rotation_services.get_rotation(db, rotation_id)
    profile = db.get(trainee_models.TraineeProfile, rotation.trainee_profile_id)
    if profile is None or profile.user_id != actor.id:
        raise Forbidden("Feedback can only be given for your own rotations")

    if _feedback_for(db, rotation.id) is not None:
        raise ValidationFailed("Feedback has already been submitted for this rotation")

    today = today or utcnow().date()
    if rotation.end_date > today:
        raise ValidationFailed("Feedback can only be given for finished rotations")

    for field in RATING_FIELDS:
        value = data.get(field)
        if not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationFailed("Ratings must be between 1 and 5")

    feedback = models.RotationFeedback(
        rotation=rotation,
        trainee_profile_id=rotation.trainee_profile_id,
        anonymous=bool(data.get("anonymous", False)),
        **{field: data.get(field) for field in RATING_FIELDS + _TEXT_FIELDS},
    )
    db.add(feedback)
    db.commit()
    db.refresh(feedback)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="RotationFeedback",
        entity_id=feedback.id,
        after=_snapshot(feedback),
        ip_address=ip_address,
    )
    return feedback


def get_rotation_feedback(db: Session, actor: User, rotation_id: str) -> dict:
    """The trainee who wrote it, or a study director with access to the trainee."""
    rotation = rotation_services.get_rotation(db, rotation_id)
    feedback = _feedback_for(db, rotation.id)
    if feedback is None:
        raise NotFound("No feedback has been submitted for this rotation")

    is_owner = feedback.trainee_profile.user_id == actor.id
    if not is_owner:
        if actor.role not in _REVIEWER_ROLES:
            raise Forbidden()
        access.ensure_trainee_access(db, actor, feedback.trainee_profile_id)

    return _view(feedback, show_name=is_owner or not feedback.anonymous)


def list_unit_feedback(
    db: Session,
    actor: User,
    *,
    unit: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[dict]:
    query = _reviewer_query(db, actor, date_from, date_to)
    if unit:
        query = query.filter(rotation_models.Rotation.unit == unit)
    rows = query.order_by(models.RotationFeedback.submitted_at.desc()).all()

    result = []
    for feedback in rows:
        view = _view(feedback, show_name=not feedback.anonymous)
        if feedback.anonymous:
            view["trainee_name"] = ANONYMOUS_NAME
        result.append(view)
    return result


def feedback_statistics(
    db: Session,
    actor: User,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    rows = _reviewer_query(db, actor, date_from, date_to).all()

    totals: "OrderedDict[str, dict]" = OrderedDict()
    for feedback in rows:
        unit = feedback.rotation.unit
        entry = totals.setdefault(unit, {"count": 0, **{field: 0 for field in RATING_FIELDS}})
        entry["count"] += 1
        for field in RATING_FIELDS:
            entry[field] += getattr(feedback, field)

    by_unit = [
        {
            "unit": unit,
            "response_count": entry["count"],
            "average_overall": _average(entry["overall_rating"], entry["count"]),
            "average_educational": _average(entry["educational_value"], entry["count"]),
            "average_supervision": _average(entry["supervision_quality"], entry["count"]),
            "average_environment": _average(entry["work_environment"], entry["count"]),
        }
        for unit, entry in totals.items()
    ]
    by_unit.sort(key=lambda row: (-row["response_count"], row["unit"]))
    return {"total_responses": len(rows), "by_unit": by_unit}


def pending_feedback(
    db: Session,
    actor: User,
    *,
    today: Optional[date] = None,
) -> List[rotation_models.Rotation]:
    """Finished rotations of the caller that still lack feedback, latest first."""
    profile = (
        db.query(trainee_models.TraineeProfile)
        .filter(trainee_models.TraineeProfile.user_id == actor.id)
        .first()
    )
    if profile is None:
        return []

    today = today or utcnow().date()
    return (
        db.query(rotation_models.Rotation)
        .outerjoin(
            models.RotationFeedback,
            models.RotationFeedback.rotation_id == rotation_models.Rotation.id,
        )
        .filter(
            rotation_models.Rotation.trainee_profile_id == profile.id,
            rotation_models.Rotation.end_date <= today,
            models.RotationFeedback.id.is_(None),
        )
        .order_by(rotation_models.Rotation.end_date.desc())
        .all()
    )
