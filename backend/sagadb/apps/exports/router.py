from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.apps.trainees import services as trainee_services
from sagadb.database import get_db
from sagadb.security import get_current_active_user

from . import trainee_pack

router = APIRouter(prefix="/export", tags=["export"])


def _log_export(db: Session, *, actor: User, profile_id: str, kind: str, request: Request) -> None:
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="Export",
        entity_id=profile_id,
        after={"format": kind},
        ip_address=audit_services.client_ip(request),
    )


@router.get("/json/{profile_id}")
def export_json(
    profile_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        profile = trainee_services.get_accessible_profile(db, current_user, profile_id)
    except PolicyError as exc:
        raise as_http(exc)

    record = trainee_pack.build_trainee_record(db, profile)
    payload = {
        "summary": trainee_pack.build_summary(db, profile, record),
        "data": record,
    }
    _log_export(db, actor=current_user, profile_id=profile.id, kind="json", request=request)
    return payload


@router.get("/package/{profile_id}")
def export_package(
    profile_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        profile = trainee_services.get_accessible_profile(db, current_user, profile_id)
    except PolicyError as exc:
        raise as_http(exc)

    zip_bytes = trainee_pack.build_package(db, profile)
    _log_export(db, actor=current_user, profile_id=profile.id, kind="package", request=request)

    filename = f"saga_export_{profile.id}.zip"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(
        iter([zip_bytes]),
        media_type="application/zip",
        headers=headers,
    )
