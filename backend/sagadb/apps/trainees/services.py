# backend/sagadb/apps/trainees/services.py

"""
Trainee profile services.

Creating a trainee creates the login and the profile together and seeds
sub-goal progress from the newest goal catalogue for the track, all in
one transaction.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts import models as account_models
from sagadb.apps.accounts import schemas as account_schemas
from sagadb.apps.accounts import services as account_services
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import Forbidden, NotFound, ValidationFailed
from sagadb.apps.subgoals import services as subgoal_services

from . import models, schemas

SUPERVISOR_ROLES = (
    account_models.AccountRole.SUPERVISOR,
    account_models.AccountRole.STUDY_DIRECTOR,
)


def _snapshot(profile: models.TraineeProfile) -> dict:
    return {
        "track_type": profile.track_type,
        "specialty": profile.specialty,
        "clinic_id": profile.clinic_id,
        "supervisor_id": profile.supervisor_id,
        "start_date": profile.start_date,
        "planned_end_date": profile.planned_end_date,
    }


def _validate_dates(start_date: date, planned_end_date: date) -> None:
    if start_date >= planned_end_date:
        raise ValidationFailed("Start date must be before the planned end date")


def _validate_supervisor(db: Session, supervisor_id: Optional[str]) -> None:
    if not supervisor_id:
        return
    supervisor = db.get(account_models.User, supervisor_id)
    if supervisor is None or supervisor.role not in SUPERVISOR_ROLES:
        raise ValidationFailed("Supervisor must be an existing supervisor or study director")


def _validate_clinic(db: Session, clinic_id: Optional[str]) -> None:
    if clinic_id and db.get(account_models.Clinic, clinic_id) is None:
        raise ValidationFailed("Unknown clinic")


# ---------------------------------------------------------------------------
# QUERIES
# ---------------------------------------------------------------------------


def visible_profiles(
    db: Session,
    requester: account_models.User,
    *,
    clinic_id: Optional[str] = None,
    track_type: Optional[models.TrackType] = None,
) -> List[models.TraineeProfile]:
    """Profiles the requester may open, matching the access policy relation by relation."""
    query = db.query(models.TraineeProfile).join(
        account_models.User,
        account_models.User.id == models.TraineeProfile.user_id,
    )
    role = requester.role
    if role == account_models.AccountRole.ADMIN:
        if clinic_id:
            query = query.filter(models.TraineeProfile.clinic_id == clinic_id)
    elif role == account_models.AccountRole.STUDY_DIRECTOR:
        if not requester.clinic_id:
            query = query.filter(models.TraineeProfile.user_id == requester.id)
        else:
            query = query.filter(models.TraineeProfile.clinic_id == requester.clinic_id)
    elif role == account_models.AccountRole.SUPERVISOR:
        query = query.filter(models.TraineeProfile.supervisor_id == requester.id)
    else:
        query = query.filter(models.TraineeProfile.user_id == requester.id)

    if track_type:
        query = query.filter(models.TraineeProfile.track_type == track_type)
    return query.order_by(account_models.User.name.asc()).all()


def get_profile(db: Session, profile_id: str) -> models.TraineeProfile:
    profile = db.get(models.TraineeProfile, profile_id)
    if profile is None:
        raise NotFound("Trainee profile not found")
    return profile


def get_profile_for_user(db: Session, user_id: str) -> models.TraineeProfile:
    profile = (
        db.query(models.TraineeProfile)
        .filter(models.TraineeProfile.user_id == user_id)
        .first()
    )
    if profile is None:
        raise NotFound("No trainee profile for this user")
    return profile


def get_accessible_profile(db: Session, requester: account_models.User, profile_id: str) -> models.TraineeProfile:
    profile = get_profile(db, profile_id)
    access.ensure_trainee_access(db, requester, profile.id)
    return profile


# ---------------------------------------------------------------------------
# MUTATIONS
# ---------------------------------------------------------------------------


def create_trainee(
    db: Session,
    *,
    actor: account_models.User,
    payload: schemas.TraineeCreate,
    ip_address: Optional[str] = None,
) -> models.TraineeProfile:
    _validate_dates(payload.start_date, payload.planned_end_date)

    clinic_id = payload.clinic_id
    if actor.role == account_models.AccountRole.STUDY_DIRECTOR:
        if not actor.clinic_id:
            raise Forbidden("Study directors without a clinic cannot create trainees")
        clinic_id = clinic_id or actor.clinic_id
        if clinic_id != actor.clinic_id:
            raise Forbidden("Study directors can only create trainees in their own clinic")
    _validate_clinic(db, clinic_id)
    _validate_supervisor(db, payload.supervisor_id)

    try:
        user = account_services.build_user(
            db,
            account_schemas.UserCreate(
                email=payload.email,
                name=payload.name,
                password=payload.password,
                role=account_models.AccountRole.TRAINEE,
                clinic_id=clinic_id,
            ),
        )
        profile = models.TraineeProfile(
            user_id=user.id,
            track_type=payload.track_type,
            specialty=payload.specialty,
            clinic_id=clinic_id,
            supervisor_id=payload.supervisor_id,
            start_date=payload.start_date,
            planned_end_date=payload.planned_end_date,
        )
        db.add(profile)
        db.flush()
        subgoal_services.initialize_progress(db, profile)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(profile)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="TraineeProfile",
        entity_id=profile.id,
        after={"email": user.email, "name": user.name, **_snapshot(profile)},
        ip_address=ip_address,
    )
    return profile


def update_trainee(
    db: Session,
    *,
    actor: account_models.User,
    profile_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.TraineeProfile:
    profile = get_profile(db, profile_id)
    access.ensure_trainee_write(db, actor, profile.id)

    if (
        actor.role == account_models.AccountRole.STUDY_DIRECTOR
        and "clinic_id" in changes
        and changes["clinic_id"] != actor.clinic_id
    ):
        raise Forbidden("Study directors can only assign trainees to their own clinic")

    _validate_dates(
        changes.get("start_date") or profile.start_date,
        changes.get("planned_end_date") or profile.planned_end_date,
    )
    if "clinic_id" in changes:
        _validate_clinic(db, changes["clinic_id"])
    if "supervisor_id" in changes:
        _validate_supervisor(db, changes["supervisor_id"])

    before = _snapshot(profile)
    for field, value in changes.items():
        if field in ("start_date", "planned_end_date", "track_type") and value is None:
            continue
        setattr(profile, field, value)
    if "clinic_id" in changes and profile.user is not None:
        profile.user.clinic_id = profile.clinic_id
    db.add(profile)
    db.commit()
    db.refresh(profile)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="TraineeProfile",
        entity_id=profile.id,
        before=before,
        after=_snapshot(profile),
        ip_address=ip_address,
    )
    return profile
