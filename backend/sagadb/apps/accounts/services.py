# backend/sagadb/apps/accounts/services.py

"""
Account and clinic services.

Routers call into here and translate the domain errors from
`sagadb.apps.policy.errors` into HTTP responses. Login failures use the
dedicated `AuthenticationError` so the router can answer 401 without
saying whether the email exists.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from sagadb.apps.policy.errors import Conflict, NotFound, ValidationFailed
from sagadb.apps.trainees import models as trainee_models
from sagadb.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_password_hash,
    verify_password,
)

from . import models, schemas

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when login credentials are invalid or the account is inactive."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalise_email(value: str) -> str:
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.email == _normalise_email(email))
        .first()
    )


def authenticate_user(db: Session, *, login_req: schemas.LoginRequest) -> models.User:
    user = get_user_by_email(db, login_req.email)
    if user is None or not verify_password(login_req.password, user.hashed_password):
        raise AuthenticationError("Incorrect email or password.")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated.")

    user.last_login_at = _utcnow()
    db.add(user)
    db.commit()
    return user


def issue_access_token_for_user(user: models.User) -> Tuple[str, int]:
    """
    Create a JWT access token for the user.

    Returns (token_string, expires_in_seconds). Role and clinic are carried
    for the client's convenience only; the server re-reads them per request.
    """
    expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "role": user.role.value if hasattr(user.role, "value") else str(user.role),
        "clinic_id": user.clinic_id,
    }
    token = create_access_token(data=payload, expires_delta=expires_delta)
    return token, int(ACCESS_TOKEN_EXPIRE_MINUTES * 60)


def change_password(
    db: Session,
    user: models.User,
    *,
    current_password: str,
    new_password: str,
) -> models.User:
    """Self-service password change; the current password must be given again."""
    if not verify_password(current_password, user.hashed_password):
        raise AuthenticationError("Current password is incorrect.")
    if len(new_password or "") < schemas.MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {schemas.MIN_PASSWORD_LENGTH} characters"
        )

    user.hashed_password = get_password_hash(new_password)
    db.add(user)
    db.commit()
    return user


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _ensure_clinic_exists(db: Session, clinic_id: Optional[str]) -> None:
    if clinic_id and db.get(models.Clinic, clinic_id) is None:
        raise ValidationFailed("Unknown clinic")


def list_users(
    db: Session,
    *,
    role: Optional[models.AccountRole] = None,
    clinic_id: Optional[str] = None,
    include_inactive: bool = True,
) -> List[models.User]:
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    if clinic_id:
        query = query.filter(models.User.clinic_id == clinic_id)
    if not include_inactive:
        query = query.filter(models.User.is_active.is_(True))
    return query.order_by(models.User.name.asc()).all()


def list_supervisors(db: Session, *, clinic_id: Optional[str] = None) -> List[models.User]:
    query = db.query(models.User).filter(
        models.User.role.in_([models.AccountRole.SUPERVISOR, models.AccountRole.STUDY_DIRECTOR]),
        models.User.is_active.is_(True),
    )
    if clinic_id:
        query = query.filter(models.User.clinic_id == clinic_id)
    return query.order_by(models.User.name.asc()).all()


def get_user(db: Session, user_id: str) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def build_user(db: Session, payload: schemas.UserCreate) -> models.User:
    """Add a new user to the session without committing."""
    email = _normalise_email(payload.email)
    if get_user_by_email(db, email) is not None:
        raise Conflict("Email is already registered")
    _ensure_clinic_exists(db, payload.clinic_id)

    user = models.User(
        email=email,
        name=payload.name.strip(),
        role=payload.role,
        clinic_id=payload.clinic_id,
        is_active=True,
        hashed_password=get_password_hash(payload.password),
    )
    db.add(user)
    db.flush()
    return user


def create_user(db: Session, payload: schemas.UserCreate) -> models.User:
    user = build_user(db, payload)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: models.User, payload: schemas.UserUpdate) -> models.User:
    data = payload.model_dump(exclude_unset=True)
    if "clinic_id" in data:
        _ensure_clinic_exists(db, data["clinic_id"])
    password = data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    if "name" in data and data["name"]:
        data["name"] = data["name"].strip()
    for field, value in data.items():
        setattr(user, field, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user: models.User, *, actor: models.User) -> models.User:
    if user.id == actor.id:
        raise ValidationFailed("You cannot deactivate your own account")
    user.is_active = False
    db.add(user)
    db.commit()
    return user


# ---------------------------------------------------------------------------
# Clinics
# ---------------------------------------------------------------------------


def list_clinics(db: Session) -> List[models.Clinic]:
    return db.query(models.Clinic).order_by(models.Clinic.name.asc()).all()


def get_clinic(db: Session, clinic_id: str) -> models.Clinic:
    clinic = db.get(models.Clinic, clinic_id)
    if clinic is None:
        raise NotFound("Clinic not found")
    return clinic


def create_clinic(db: Session, payload: schemas.ClinicCreate) -> models.Clinic:
    clinic = models.Clinic(name=payload.name.strip(), organization=payload.organization)
    db.add(clinic)
    db.commit()
    db.refresh(clinic)
    return clinic


def update_clinic(db: Session, clinic: models.Clinic, payload: schemas.ClinicUpdate) -> models.Clinic:
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(clinic, field, value)
    db.add(clinic)
    db.commit()
    db.refresh(clinic)
    return clinic


def delete_clinic(db: Session, clinic: models.Clinic) -> None:
    has_users = (
        db.query(models.User.id).filter(models.User.clinic_id == clinic.id).first() is not None
    )
    has_profiles = (
        db.query(trainee_models.TraineeProfile.id)
        .filter(trainee_models.TraineeProfile.clinic_id == clinic.id)
        .first()
        is not None
    )
    if has_users or has_profiles:
        raise ValidationFailed("Clinic still has users or trainee profiles and cannot be deleted")
    db.delete(clinic)
    db.commit()
