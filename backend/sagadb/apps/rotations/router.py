from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user

from . import schemas, services

router = APIRouter(prefix="/rotations", tags=["rotations"])


@router.get("/", response_model=List[schemas.RotationRead])
def list_rotations(
    trainee_profile_id: str,
    planned: Optional[bool] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.list_rotations(
        db,
        trainee_profile_id,
        planned=planned,
        start_from=start_date,
        end_until=end_date,
    )


@router.get("/{rotation_id}", response_model=schemas.RotationRead)
def get_rotation(
    rotation_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_rotation(db, current_user, rotation_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/", response_model=schemas.RotationRead, status_code=status.HTTP_201_CREATED)
def create_rotation(
    payload: schemas.RotationCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.create_rotation(
            db,
            actor=current_user,
            data=payload.model_dump(),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{rotation_id}", response_model=schemas.RotationRead)
def update_rotation(
    rotation_id: str,
    payload: schemas.RotationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_rotation(
            db,
            actor=current_user,
            rotation_id=rotation_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{rotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rotation(
    rotation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_rotation(
            db,
            actor=current_user,
            rotation_id=rotation_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
    return None
