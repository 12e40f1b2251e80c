from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user

from . import schemas, services

router = APIRouter(prefix="/supervision", tags=["supervision"])


@router.get("/", response_model=List[schemas.MeetingRead])
def list_meetings(
    trainee_profile_id: str,
    include_voided: bool = True,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.list_meetings(db, trainee_profile_id, include_voided=include_voided)


@router.get("/{meeting_id}", response_model=schemas.MeetingRead)
def get_meeting(
    meeting_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_meeting(db, current_user, meeting_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/", response_model=schemas.MeetingRead, status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: schemas.MeetingCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.create_meeting(
            db,
            actor=current_user,
            data=payload.model_dump(),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{meeting_id}", response_model=schemas.MeetingRead)
def update_meeting(
    meeting_id: str,
    payload: schemas.MeetingUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_meeting(
            db,
            actor=current_user,
            meeting_id=meeting_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(
    meeting_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_meeting(
            db,
            actor=current_user,
            meeting_id=meeting_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
    return None


@router.post("/{meeting_id}/sign", response_model=schemas.MeetingRead)
def sign_meeting(
    meeting_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.sign_meeting(
            db,
            actor=current_user,
            meeting_id=meeting_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/{meeting_id}/void", response_model=schemas.MeetingRead)
def void_meeting(
    meeting_id: str,
    payload: schemas.MeetingVoid,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.void_meeting(
            db,
            actor=current_user,
            meeting_id=meeting_id,
            reason=payload.reason,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
