# backend/sagadb/apps/accounts/router_public.py

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db
from sagadb.security import get_current_active_user

from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with email and password",
)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    try:
        user = services.authenticate_user(db, login_req=payload)
    except services.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc) or "Incorrect email or password.",
        )

    audit_services.log_event(
        db,
        actor_user_id=user.id,
        action=AuditAction.CREATE,
        entity_type="Session",
        entity_id=user.id,
        ip_address=audit_services.client_ip(request),
    )

    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(
        access_token=token,
        expires_in=expires_in,
        user=schemas.UserRead.model_validate(user),
    )


@router.get("/me", response_model=schemas.UserRead, summary="Current user")
def read_me(current_user: models.User = Depends(get_current_active_user)):
    return current_user


@router.post("/change-password", summary="Change own password")
def change_password(
    payload: schemas.ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    try:
        services.change_password(
            db,
            current_user,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
    except services.AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except PolicyError as exc:
        raise as_http(exc)

    audit_services.log_event(
        db,
        actor_user_id=current_user.id,
        action=AuditAction.UPDATE,
        entity_type="User",
        entity_id=current_user.id,
        after={"password_changed": True},
        ip_address=audit_services.client_ip(request),
    )
    return {"success": True}
