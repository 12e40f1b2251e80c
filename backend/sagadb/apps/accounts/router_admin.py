# backend/sagadb/apps/accounts/router_admin.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user, require_admin

from . import models, schemas, services

users_router = APIRouter(prefix="/users", tags=["users"])
clinics_router = APIRouter(prefix="/clinics", tags=["clinics"])


def _user_snapshot(user: models.User) -> dict:
    return {
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "clinic_id": user.clinic_id,
        "is_active": user.is_active,
    }


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


@users_router.get("/", response_model=List[schemas.UserRead])
def list_users(
    role: Optional[models.AccountRole] = None,
    clinic_id: Optional[str] = None,
    include_inactive: bool = True,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_admin),
):
    return services.list_users(db, role=role, clinic_id=clinic_id, include_inactive=include_inactive)


@users_router.get("/supervisors", response_model=List[schemas.UserSummary])
def list_supervisors(
    clinic_id: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return services.list_supervisors(db, clinic_id=clinic_id)


@users_router.get("/{user_id}", response_model=schemas.UserRead)
def get_user(
    user_id: str,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        return services.get_user(db, user_id)
    except PolicyError as exc:
        raise as_http(exc)


@users_router.post("/", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        user = services.create_user(db, payload)
    except PolicyError as exc:
        raise as_http(exc)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.CREATE,
        entity_type="User",
        entity_id=user.id,
        after=_user_snapshot(user),
        ip_address=audit_services.client_ip(request),
    )
    return user


@users_router.patch("/{user_id}", response_model=schemas.UserRead)
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        user = services.get_user(db, user_id)
        before = _user_snapshot(user)
        user = services.update_user(db, user, payload)
    except PolicyError as exc:
        raise as_http(exc)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.UPDATE,
        entity_type="User",
        entity_id=user.id,
        before=before,
        after=_user_snapshot(user),
        ip_address=audit_services.client_ip(request),
    )
    return user


@users_router.post("/{user_id}/deactivate", response_model=schemas.UserRead)
def deactivate_user(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        user = services.get_user(db, user_id)
        user = services.deactivate_user(db, user, actor=current_user)
    except PolicyError as exc:
        raise as_http(exc)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.UPDATE,
        entity_type="User",
        entity_id=user.id,
        before={"is_active": True},
        after={"is_active": False},
        ip_address=audit_services.client_ip(request),
    )
    return user


# ---------------------------------------------------------------------------
# CLINICS
# ---------------------------------------------------------------------------


@clinics_router.get("/", response_model=List[schemas.ClinicRead])
def list_clinics(
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return services.list_clinics(db)


@clinics_router.get("/{clinic_id}", response_model=schemas.ClinicRead)
def get_clinic(
    clinic_id: str,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(get_current_active_user),
):
    try:
        return services.get_clinic(db, clinic_id)
    except PolicyError as exc:
        raise as_http(exc)


@clinics_router.post("/", response_model=schemas.ClinicRead, status_code=status.HTTP_201_CREATED)
def create_clinic(
    payload: schemas.ClinicCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    clinic = services.create_clinic(db, payload)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.CREATE,
        entity_type="Clinic",
        entity_id=clinic.id,
        after={"name": clinic.name, "organization": clinic.organization},
        ip_address=audit_services.client_ip(request),
    )
    return clinic


@clinics_router.patch("/{clinic_id}", response_model=schemas.ClinicRead)
def update_clinic(
    clinic_id: str,
    payload: schemas.ClinicUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        clinic = services.get_clinic(db, clinic_id)
        before = {"name": clinic.name, "organization": clinic.organization}
        clinic = services.update_clinic(db, clinic, payload)
    except PolicyError as exc:
        raise as_http(exc)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.UPDATE,
        entity_type="Clinic",
        entity_id=clinic.id,
        before=before,
        after={"name": clinic.name, "organization": clinic.organization},
        ip_address=audit_services.client_ip(request),
    )
    return clinic


@clinics_router.delete("/{clinic_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_clinic(
    clinic_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        clinic = services.get_clinic(db, clinic_id)
        before = {"name": clinic.name, "organization": clinic.organization}
        services.delete_clinic(db, clinic)
    except PolicyError as exc:
        raise as_http(exc)
    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.DELETE,
        entity_type="Clinic",
        entity_id=clinic_id,
        before=before,
        ip_address=audit_services.client_ip(request),
    )
    return None
