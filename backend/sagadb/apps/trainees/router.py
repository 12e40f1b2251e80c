from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user, require_roles

from . import models, schemas, services

router = APIRouter(prefix="/trainees", tags=["trainees"])


@router.get("/", response_model=List[schemas.TraineeRead])
def list_trainees(
    clinic_id: Optional[str] = None,
    track_type: Optional[models.TrackType] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.visible_profiles(db, current_user, clinic_id=clinic_id, track_type=track_type)


@router.get("/me", response_model=schemas.TraineeRead)
def my_profile(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_profile_for_user(db, current_user.id)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/{profile_id}", response_model=schemas.TraineeRead)
def get_trainee(
    profile_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_profile(db, current_user, profile_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/", response_model=schemas.TraineeRead, status_code=status.HTTP_201_CREATED)
def create_trainee(
    payload: schemas.TraineeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.ADMIN, AccountRole.STUDY_DIRECTOR)),
):
    try:
        return services.create_trainee(
            db,
            actor=current_user,
            payload=payload,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{profile_id}", response_model=schemas.TraineeRead)
def update_trainee(
    profile_id: str,
    payload: schemas.TraineeUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.ADMIN, AccountRole.STUDY_DIRECTOR)),
):
    try:
        return services.update_trainee(
            db,
            actor=current_user,
            profile_id=profile_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
