from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user, require_roles

from . import schemas, services
from .models import AssessmentType

router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.get("/", response_model=List[schemas.AssessmentRead])
def list_assessments(
    trainee_profile_id: str,
    type: Optional[AssessmentType] = None,
    signed: Optional[bool] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.list_assessments(db, trainee_profile_id, type=type, signed=signed)


@router.get("/pending-signatures", response_model=List[schemas.AssessmentRead])
def pending_signatures(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(
        require_roles(AccountRole.SUPERVISOR, AccountRole.STUDY_DIRECTOR, AccountRole.ADMIN)
    ),
):
    """Unsigned assessments where the caller is the assessor."""
    return services.pending_signatures(db, current_user)


@router.get("/{assessment_id}", response_model=schemas.AssessmentRead)
def get_assessment(
    assessment_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_assessment(db, current_user, assessment_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/", response_model=schemas.AssessmentRead, status_code=status.HTTP_201_CREATED)
def create_assessment(
    payload: schemas.AssessmentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.create_assessment(
            db,
            actor=current_user,
            data=payload.model_dump(),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{assessment_id}", response_model=schemas.AssessmentRead)
def update_assessment(
    assessment_id: str,
    payload: schemas.AssessmentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_assessment(
            db,
            actor=current_user,
            assessment_id=assessment_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assessment(
    assessment_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_assessment(
            db,
            actor=current_user,
            assessment_id=assessment_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
    return None


@router.post("/{assessment_id}/sign", response_model=schemas.AssessmentRead)
def sign_assessment(
    assessment_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.sign_assessment(
            db,
            actor=current_user,
            assessment_id=assessment_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
