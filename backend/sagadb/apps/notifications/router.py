from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from sagadb.security import get_current_active_user, require_roles
from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.policy.errors import PolicyError, as_http
from sagadb.database import get_db, get_read_db

from . import models, schemas, service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=schemas.NotificationList)
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    items, total, unread = service.list_notifications(
        db,
        current_user.id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return schemas.NotificationList(
        items=items,
        total=total,
        unread_count=unread,
        limit=limit,
        offset=offset,
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
def unread_count(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return schemas.UnreadCount(count=service.count_unread(db, current_user.id))


@router.get("/preferences", response_model=schemas.NotificationPreferenceRead)
def get_preferences(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    pref = service.get_or_create_preferences(db, current_user.id)
    db.commit()
    return pref


@router.patch("/preferences", response_model=schemas.NotificationPreferenceRead)
def update_preferences(
    payload: schemas.NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return service.update_preferences(db, current_user.id, payload.model_dump(exclude_unset=True))


@router.api_route("/read-all", methods=["POST", "PATCH"])
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    updated = service.mark_all_read(db, current_user.id)
    return {"success": True, "updated": updated}


@router.delete("/read")
def delete_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    deleted = service.delete_read(db, current_user.id)
    return {"success": True, "deleted": deleted}


@router.patch("/{notification_id}/read", response_model=schemas.NotificationRead)
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return service.mark_read(db, current_user.id, notification_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        service.delete_notification(db, current_user.id, notification_id)
    except PolicyError as exc:
        raise as_http(exc)
    return None


@router.get("/email-logs", response_model=List[schemas.EmailLogRead])
def list_email_logs(
    status_filter: Optional[models.EmailStatus] = Query(None, alias="status"),
    template_key: Optional[str] = None,
    recipient: Optional[str] = None,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.ADMIN)),
):
    if start and end and start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end")
    qs = db.query(models.EmailLog)
    if status_filter:
        qs = qs.filter(models.EmailLog.status == status_filter)
    if template_key:
        qs = qs.filter(models.EmailLog.template_key == template_key)
    if recipient:
        qs = qs.filter(models.EmailLog.recipient.ilike(f"%{recipient}%"))
    if start:
        qs = qs.filter(models.EmailLog.created_at >= start)
    if end:
        qs = qs.filter(models.EmailLog.created_at <= end)
    return qs.order_by(models.EmailLog.created_at.desc()).limit(limit).all()
