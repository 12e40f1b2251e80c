from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user

from . import models, schemas, services

router = APIRouter(prefix="/subgoals", tags=["subgoals"])


@router.get("/specs", response_model=List[schemas.GoalSpecRead])
def list_specs(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return [
        schemas.GoalSpecRead.model_validate(row["spec"]).model_copy(
            update={"sub_goal_count": row["sub_goal_count"]}
        )
        for row in services.list_goal_specs(db)
    ]


@router.get("/specs/{spec_id}/subgoals", response_model=List[schemas.SubGoalRead])
def list_spec_sub_goals(
    spec_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.list_spec_sub_goals(db, spec_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/progress", response_model=List[schemas.ProgressWithEvidence])
def list_progress(
    trainee_profile_id: str,
    status: Optional[models.SubGoalStatus] = None,
    category: Optional[models.SubGoalCategory] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)

    evidence = services.collect_evidence(db, trainee_profile_id)
    items = []
    for progress in services.list_progress(db, trainee_profile_id, status=status, category=category):
        item = schemas.ProgressWithEvidence.model_validate(progress)
        linked = evidence.get(progress.sub_goal_id)
        if linked:
            item.evidence = schemas.Evidence.model_validate(linked, from_attributes=True)
        items.append(item)
    return items


@router.patch("/progress/{progress_id}", response_model=schemas.ProgressRead)
def update_progress(
    progress_id: str,
    payload: schemas.ProgressUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_progress(
            db,
            actor=current_user,
            progress_id=progress_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/progress/{progress_id}/sign", response_model=schemas.ProgressRead)
def sign_progress(
    progress_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.sign_progress(
            db,
            actor=current_user,
            progress_id=progress_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/summary", response_model=schemas.ProgressSummary)
def progress_summary(
    trainee_profile_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.progress_summary(db, trainee_profile_id)
