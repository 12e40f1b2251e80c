# backend/sagadb/apps/rotations/services.py

from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import NotFound, ValidationFailed
from sagadb.apps.subgoals import services as subgoal_services
from sagadb.apps.trainees import models as trainee_models

from . import models

_FIELDS = ("unit", "specialty_area", "start_date", "end_date", "planned", "supervisor_name", "notes")


def is_overlapping(start1: date, end1: date, start2: date, end2: date) -> bool:
    """Inclusive ranges: touching end and start days count as overlap."""
    return start1 <= end2 and end1 >= start2


def _snapshot(rotation: models.Rotation) -> dict:
    data = {field: getattr(rotation, field) for field in _FIELDS}
    data["sub_goal_ids"] = sorted(sg.id for sg in rotation.sub_goals)
    return data


def validate_rotation(
    db: Session,
    *,
    trainee_profile_id: str,
    start_date: date,
    end_date: date,
    planned: bool,
    exclude_id: Optional[str] = None,
) -> None:
    if start_date >= end_date:
        raise ValidationFailed("End date must be after start date")

    if not planned:
        query = db.query(models.Rotation).filter(
            models.Rotation.trainee_profile_id == trainee_profile_id,
            models.Rotation.planned.is_(False),
        )
        if exclude_id:
            query = query.filter(models.Rotation.id != exclude_id)
        for existing in query.all():
            if is_overlapping(start_date, end_date, existing.start_date, existing.end_date):
                raise ValidationFailed(
                    f"Rotation overlaps the existing rotation at {existing.unit} "
                    f"({existing.start_date.isoformat()} - {existing.end_date.isoformat()})"
                )

    profile = db.get(trainee_models.TraineeProfile, trainee_profile_id)
    if profile is None:
        raise ValidationFailed("Trainee profile not found")
    if start_date < profile.start_date or end_date > profile.planned_end_date:
        raise ValidationFailed(
            "Rotation must lie within the training period "
            f"({profile.start_date.isoformat()} - {profile.planned_end_date.isoformat()})"
        )


def list_rotations(
    db: Session,
    trainee_profile_id: str,
    *,
    planned: Optional[bool] = None,
    start_from: Optional[date] = None,
    end_until: Optional[date] = None,
) -> List[models.Rotation]:
    query = db.query(models.Rotation).filter(models.Rotation.trainee_profile_id == trainee_profile_id)
    if planned is not None:
        query = query.filter(models.Rotation.planned.is_(planned))
    if start_from:
        query = query.filter(models.Rotation.start_date >= start_from)
    if end_until:
        query = query.filter(models.Rotation.end_date <= end_until)
    return query.order_by(models.Rotation.start_date.asc()).all()


def get_rotation(db: Session, rotation_id: str) -> models.Rotation:
    rotation = db.get(models.Rotation, rotation_id)
    if rotation is None:
        raise NotFound("Rotation not found")
    return rotation


def get_accessible_rotation(db: Session, actor: User, rotation_id: str) -> models.Rotation:
    rotation = get_rotation(db, rotation_id)
    access.ensure_trainee_access(db, actor, rotation.trainee_profile_id)
    return rotation


def create_rotation(
    db: Session,
    *,
    actor: User,
    data: dict,
    ip_address: Optional[str] = None,
) -> models.Rotation:
    trainee_profile_id = data["trainee_profile_id"]
    access.ensure_trainee_write(db, actor, trainee_profile_id)
    validate_rotation(
        db,
        trainee_profile_id=trainee_profile_id,
        start_date=data["start_date"],
        end_date=data["end_date"],
        planned=bool(data.get("planned", False)),
    )

    rotation = models.Rotation(
        trainee_profile_id=trainee_profile_id,
        **{field: data.get(field) for field in _FIELDS if field in data},
    )
    rotation.planned = bool(data.get("planned", False))
    rotation.sub_goals = subgoal_services.resolve_sub_goals(db, data.get("sub_goal_ids"))
    db.add(rotation)
    db.commit()
    db.refresh(rotation)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="Rotation",
        entity_id=rotation.id,
        after=_snapshot(rotation),
        ip_address=ip_address,
    )
    return rotation


def update_rotation(
    db: Session,
    *,
    actor: User,
    rotation_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.Rotation:
    rotation = get_rotation(db, rotation_id)
    access.ensure_trainee_write(db, actor, rotation.trainee_profile_id)

    planned = changes.get("planned")
    validate_rotation(
        db,
        trainee_profile_id=rotation.trainee_profile_id,
        start_date=changes.get("start_date") or rotation.start_date,
        end_date=changes.get("end_date") or rotation.end_date,
        planned=rotation.planned if planned is None else planned,
        exclude_id=rotation.id,
    )

    before = _snapshot(rotation)
    for field in _FIELDS:
        if field in changes:
            if field in ("unit", "start_date", "end_date", "planned") and changes[field] is None:
                continue
            setattr(rotation, field, changes[field])
    if "sub_goal_ids" in changes:
        rotation.sub_goals = subgoal_services.resolve_sub_goals(db, changes["sub_goal_ids"])
    db.add(rotation)
    db.commit()
    db.refresh(rotation)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="Rotation",
        entity_id=rotation.id,
        before=before,
        after=_snapshot(rotation),
        ip_address=ip_address,
    )
    return rotation


def delete_rotation(
    db: Session,
    *,
    actor: User,
    rotation_id: str,
    ip_address: Optional[str] = None,
) -> None:
    rotation = get_rotation(db, rotation_id)
    access.ensure_trainee_write(db, actor, rotation.trainee_profile_id)
    before = _snapshot(rotation)
    db.delete(rotation)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.DELETE,
        entity_type="Rotation",
        entity_id=rotation_id,
        before=before,
        ip_address=ip_address,
    )
