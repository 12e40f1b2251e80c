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

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("/", response_model=List[schemas.CourseRead])
def list_courses(
    trainee_profile_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.list_courses(db, trainee_profile_id)


@router.get("/{course_id}", response_model=schemas.CourseRead)
def get_course(
    course_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_course(db, current_user, course_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.post("/", response_model=schemas.CourseRead, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: schemas.CourseCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.create_course(
            db,
            actor=current_user,
            data=payload.model_dump(),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{course_id}", response_model=schemas.CourseRead)
def update_course(
    course_id: str,
    payload: schemas.CourseUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_course(
            db,
            actor=current_user,
            course_id=course_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(
    course_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_course(
            db,
            actor=current_user,
            course_id=course_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
    return None
