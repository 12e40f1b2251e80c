from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user, require_roles

from . import schemas, services

router = APIRouter(prefix="/feedback", tags=["feedback"])

_reviewer = require_roles(AccountRole.STUDY_DIRECTOR, AccountRole.ADMIN)


@router.post(
    "/rotation/{rotation_id}",
    response_model=schemas.FeedbackRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_feedback(
    rotation_id: str,
    payload: schemas.FeedbackCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.submit_feedback(
            db,
            actor=current_user,
            rotation_id=rotation_id,
            data=payload.model_dump(),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/rotation/{rotation_id}", response_model=schemas.RotationFeedbackView)
def get_rotation_feedback(
    rotation_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_rotation_feedback(db, current_user, rotation_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/unit", response_model=List[schemas.RotationFeedbackView])
def list_unit_feedback(
    unit: Optional[str] = None,
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(_reviewer),
):
    try:
        return services.list_unit_feedback(
            db, current_user, unit=unit, date_from=date_from, date_to=date_to
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/statistics", response_model=schemas.FeedbackStatistics)
def feedback_statistics(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(_reviewer),
):
    try:
        return services.feedback_statistics(db, current_user, date_from=date_from, date_to=date_to)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/pending", response_model=schemas.PendingFeedback)
def pending_feedback(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    rotations = services.pending_feedback(db, current_user)
    return schemas.PendingFeedback(
        pending_feedback=[schemas.PendingRotation.model_validate(rotation) for rotation in rotations]
    )
