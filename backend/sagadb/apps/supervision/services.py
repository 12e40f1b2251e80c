# backend/sagadb/apps/supervision/services.py

"""
Supervision meeting services.

A signed meeting is never edited or deleted. If it was recorded in error
a signer voids it with a reason; the row and its signature stay, and
`last_active_meeting` (used by the dashboard, the reminder sweep and the
export summary) no longer sees it.
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
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import utcnow

from . import models

_FIELDS = ("date", "notes", "agreed_actions", "supervisor_id")
_SUPERVISOR_ROLES = (AccountRole.SUPERVISOR, AccountRole.STUDY_DIRECTOR)


def _snapshot(meeting: models.SupervisionMeeting) -> dict:
    return {field: getattr(meeting, field) for field in _FIELDS}


def _validate_supervisor(db: Session, supervisor_id: Optional[str]) -> None:
    if supervisor_id and db.get(User, supervisor_id) is None:
        raise ValidationFailed("Unknown supervisor")


def active_meetings_query(db: Session, trainee_profile_id: str):
    return db.query(models.SupervisionMeeting).filter(
        models.SupervisionMeeting.trainee_profile_id == trainee_profile_id,
        models.SupervisionMeeting.voided_at.is_(None),
    )


def last_active_meeting(db: Session, trainee_profile_id: str) -> Optional[models.SupervisionMeeting]:
    """Latest meeting that has not been voided."""
    return (
        active_meetings_query(db, trainee_profile_id)
        .order_by(models.SupervisionMeeting.date.desc())
        .first()
    )


def list_meetings(
    db: Session,
    trainee_profile_id: str,
    *,
    include_voided: bool = True,
) -> List[models.SupervisionMeeting]:
    query = db.query(models.SupervisionMeeting).filter(
        models.SupervisionMeeting.trainee_profile_id == trainee_profile_id
    )
    if not include_voided:
        query = query.filter(models.SupervisionMeeting.voided_at.is_(None))
    return query.order_by(models.SupervisionMeeting.date.desc()).all()


def get_meeting(db: Session, meeting_id: str) -> models.SupervisionMeeting:
    meeting = db.get(models.SupervisionMeeting, meeting_id)
    if meeting is None:
        raise NotFound("Supervision meeting not found")
    return meeting


def get_accessible_meeting(db: Session, actor: User, meeting_id: str) -> models.SupervisionMeeting:
    meeting = get_meeting(db, meeting_id)
    access.ensure_trainee_access(db, actor, meeting.trainee_profile_id)
    return meeting


def create_meeting(
    db: Session,
    *,
    actor: User,
    data: dict,
    ip_address: Optional[str] = None,
) -> models.SupervisionMeeting:
    access.ensure_trainee_write(db, actor, data["trainee_profile_id"])

    supervisor_id = data.get("supervisor_id")
    if not supervisor_id:
        if actor.role in _SUPERVISOR_ROLES:
            supervisor_id = actor.id
        else:
            profile = db.get(trainee_models.TraineeProfile, data["trainee_profile_id"])
            supervisor_id = profile.supervisor_id
    _validate_supervisor(db, supervisor_id)

    meeting = models.SupervisionMeeting(
        trainee_profile_id=data["trainee_profile_id"],
        date=data["date"],
        notes=data.get("notes"),
        agreed_actions=data.get("agreed_actions"),
        supervisor_id=supervisor_id,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="SupervisionMeeting",
        entity_id=meeting.id,
        after=_snapshot(meeting),
        ip_address=ip_address,
    )
    return meeting


def update_meeting(
    db: Session,
    *,
    actor: User,
    meeting_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.SupervisionMeeting:
    meeting = get_meeting(db, meeting_id)
    locks.ensure_mutable(meeting)
    access.ensure_trainee_write(db, actor, meeting.trainee_profile_id)
    if "supervisor_id" in changes:
        _validate_supervisor(db, changes["supervisor_id"])

    before = _snapshot(meeting)
    for field in _FIELDS:
        if field in changes:
            if field == "date" and changes[field] is None:
                continue
            setattr(meeting, field, changes[field])
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="SupervisionMeeting",
        entity_id=meeting.id,
        before=before,
        after=_snapshot(meeting),
        ip_address=ip_address,
    )
    return meeting


def delete_meeting(
    db: Session,
    *,
    actor: User,
    meeting_id: str,
    ip_address: Optional[str] = None,
) -> None:
    meeting = get_meeting(db, meeting_id)
    locks.ensure_mutable(meeting)
    access.ensure_trainee_write(db, actor, meeting.trainee_profile_id)

    before = _snapshot(meeting)
    db.delete(meeting)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.DELETE,
        entity_type="SupervisionMeeting",
        entity_id=meeting_id,
        before=before,
        ip_address=ip_address,
    )


def sign_meeting(
    db: Session,
    *,
    actor: User,
    meeting_id: str,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
) -> models.SupervisionMeeting:
    locks.ensure_signer_role(actor)
    meeting = get_meeting(db, meeting_id)
    locks.ensure_signable(meeting)
    access.ensure_trainee_access(db, actor, meeting.trainee_profile_id)

    locks.apply_signature(meeting, actor, now or utcnow())
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.SIGN,
        entity_type="SupervisionMeeting",
        entity_id=meeting.id,
        after={"signed_at": meeting.signed_at, "signed_by": actor.name},
        ip_address=ip_address,
    )
    profile = db.get(trainee_models.TraineeProfile, meeting.trainee_profile_id)
    notification_service.notify_signature(
        db,
        trainee_user_id=profile.user_id,
        signer_name=actor.name,
        kind="supervision",
        description=f"handledarsamtalet {meeting.date.isoformat()}",
    )
    return meeting


def void_meeting(
    db: Session,
    *,
    actor: User,
    meeting_id: str,
    reason: Optional[str],
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
) -> models.SupervisionMeeting:
    locks.ensure_signer_role(actor)
    meeting = get_meeting(db, meeting_id)
    access.ensure_trainee_access(db, actor, meeting.trainee_profile_id)

    before = {"voided_at": meeting.voided_at, "void_reason": meeting.void_reason}
    locks.apply_void(meeting, actor, reason, now or utcnow())
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.VOID,
        entity_type="SupervisionMeeting",
        entity_id=meeting.id,
        before=before,
        after={
            "voided_at": meeting.voided_at,
            "voided_by": actor.name,
            "void_reason": meeting.void_reason,
            "signed_at": meeting.signed_at,
        },
        ip_address=ip_address,
    )
    return meeting
