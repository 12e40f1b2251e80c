# backend/sagadb/apps/assessments/services.py

"""
Assessment services.

Signed assessments are locked: `update_assessment` and `delete_assessment`
go through `locks.ensure_mutable` before anything else touches the row.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.notifications import service as notification_service
from sagadb.apps.policy import access, locks
from sagadb.apps.policy.errors import NotFound, ValidationFailed
from sagadb.apps.subgoals import services as subgoal_services
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import utcnow

from . import models

_FIELDS = ("type", "date", "context", "assessor_id", "rating", "narrative_feedback")
_ASSESSOR_ROLES = (AccountRole.SUPERVISOR, AccountRole.STUDY_DIRECTOR)

TYPE_LABELS = {
    models.AssessmentType.DOPS: "DOPS",
    models.AssessmentType.MINI_CEX: "Mini-CEX",
    models.AssessmentType.CBD: "CBD",
    models.AssessmentType.ANNAT: "Annat",
}


def _snapshot(assessment: models.Assessment) -> dict:
    data = {field: getattr(assessment, field) for field in _FIELDS}
    data["sub_goal_ids"] = sorted(sg.id for sg in assessment.sub_goals)
    return data


def _validate_assessor(db: Session, assessor_id: Optional[str]) -> None:
    if assessor_id and db.get(User, assessor_id) is None:
        raise ValidationFailed("Unknown assessor")


def list_assessments(
    db: Session,
    trainee_profile_id: str,
    *,
    type: Optional[models.AssessmentType] = None,
    signed: Optional[bool] = None,
) -> List[models.Assessment]:
    query = db.query(models.Assessment).filter(models.Assessment.trainee_profile_id == trainee_profile_id)
    if type:
        query = query.filter(models.Assessment.type == type)
    if signed is True:
        query = query.filter(models.Assessment.signed_at.is_not(None))
    elif signed is False:
        query = query.filter(models.Assessment.signed_at.is_(None))
    return query.order_by(models.Assessment.date.desc()).all()


def pending_signatures(db: Session, assessor: User) -> List[models.Assessment]:
    return (
        db.query(models.Assessment)
        .filter(
            models.Assessment.assessor_id == assessor.id,
            models.Assessment.signed_at.is_(None),
        )
        .order_by(models.Assessment.date.asc())
        .all()
    )


def get_assessment(db: Session, assessment_id: str) -> models.Assessment:
    assessment = db.get(models.Assessment, assessment_id)
    if assessment is None:
        raise NotFound("Assessment not found")
    return assessment


def get_accessible_assessment(db: Session, actor: User, assessment_id: str) -> models.Assessment:
    assessment = get_assessment(db, assessment_id)
    access.ensure_trainee_access(db, actor, assessment.trainee_profile_id)
    return assessment


def create_assessment(
    db: Session,
    *,
    actor: User,
    data: dict,
    ip_address: Optional[str] = None,
) -> models.Assessment:
    access.ensure_trainee_write(db, actor, data["trainee_profile_id"])

    assessor_id = data.get("assessor_id")
    if not assessor_id and actor.role in _ASSESSOR_ROLES:
        assessor_id = actor.id
    _validate_assessor(db, assessor_id)

    assessment = models.Assessment(
        trainee_profile_id=data["trainee_profile_id"],
        type=data["type"],
        date=data["date"],
        context=data.get("context"),
        assessor_id=assessor_id,
        rating=data.get("rating"),
        narrative_feedback=data.get("narrative_feedback"),
    )
    assessment.sub_goals = subgoal_services.resolve_sub_goals(db, data.get("sub_goal_ids"))
    db.add(assessment)
    db.commit()
    db.refresh(assessment)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="Assessment",
        entity_id=assessment.id,
        after=_snapshot(assessment),
        ip_address=ip_address,
    )
    return assessment


def update_assessment(
    db: Session,
    *,
    actor: User,
    assessment_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.Assessment:
    assessment = get_assessment(db, assessment_id)
    locks.ensure_mutable(assessment)
    access.ensure_trainee_write(db, actor, assessment.trainee_profile_id)
    if "assessor_id" in changes:
        _validate_assessor(db, changes["assessor_id"])

    before = _snapshot(assessment)
    for field in _FIELDS:
        if field in changes:
            if field in ("type", "date") and changes[field] is None:
                continue
            setattr(assessment, field, changes[field])
    if "sub_goal_ids" in changes:
        assessment.sub_goals = subgoal_services.resolve_sub_goals(db, changes["sub_goal_ids"])
    db.add(assessment)
    db.commit()
    db.refresh(assessment)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="Assessment",
        entity_id=assessment.id,
        before=before,
        after=_snapshot(assessment),
        ip_address=ip_address,
    )
    return assessment


def delete_assessment(
    db: Session,
    *,
    actor: User,
    assessment_id: str,
    ip_address: Optional[str] = None,
) -> None:
    assessment = get_assessment(db, assessment_id)
    locks.ensure_mutable(assessment)
    access.ensure_trainee_write(db, actor, assessment.trainee_profile_id)

    before = _snapshot(assessment)
    db.delete(assessment)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.DELETE,
        entity_type="Assessment",
        entity_id=assessment_id,
        before=before,
        ip_address=ip_address,
    )


def sign_assessment(
    db: Session,
    *,
    actor: User,
    assessment_id: str,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
) -> models.Assessment:
    locks.ensure_signer_role(actor)
    assessment = get_assessment(db, assessment_id)
    locks.ensure_signable(assessment)
    access.ensure_trainee_access(db, actor, assessment.trainee_profile_id)

    locks.apply_signature(assessment, actor, now or utcnow())
    db.add(assessment)
    db.commit()
    db.refresh(assessment)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.SIGN,
        entity_type="Assessment",
        entity_id=assessment.id,
        after={"signed_at": assessment.signed_at, "signed_by": actor.name},
        ip_address=ip_address,
    )
    profile = db.get(trainee_models.TraineeProfile, assessment.trainee_profile_id)
    notification_service.notify_signature(
        db,
        trainee_user_id=profile.user_id,
        signer_name=actor.name,
        kind="assessment",
        description=f"{TYPE_LABELS.get(assessment.type, assessment.type.value)}-bedömning",
    )
    return assessment
