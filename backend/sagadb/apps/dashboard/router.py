from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.apps.trainees import services as trainee_services
from sagadb.database import get_read_db
from sagadb.security import get_current_active_user, require_roles

from . import schemas, services

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/me", response_model=schemas.TraineeDashboard)
def my_dashboard(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        profile = trainee_services.get_profile_for_user(db, current_user.id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.trainee_dashboard(db, profile)


@router.get("/trainee/{profile_id}", response_model=schemas.TraineeDashboard)
def trainee_dashboard(
    profile_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        profile = trainee_services.get_accessible_profile(db, current_user, profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.trainee_dashboard(db, profile)


@router.get("/overview", response_model=schemas.ClinicOverview)
def clinic_overview(
    clinic_id: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.STUDY_DIRECTOR, AccountRole.ADMIN)),
):
    try:
        return services.clinic_overview(db, current_user, clinic_id=clinic_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/supervisor", response_model=List[schemas.TraineeOverviewRow])
def supervisor_overview(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(
        require_roles(AccountRole.SUPERVISOR, AccountRole.STUDY_DIRECTOR, AccountRole.ADMIN)
    ),
):
    return services.supervisor_overview(db, current_user)
