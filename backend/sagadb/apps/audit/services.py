from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import enum
import logging
from typing import Any, Optional, Sequence

from fastapi import Request
from sqlalchemy.orm import Session

from sagadb.apps.accounts import models as account_models

from . import models

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditResult:
    """Outcome of an audit write. `written=False` means it failed and was logged."""

    written: bool
    event: Optional[models.AuditEvent] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.written


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


def _jsonable(payload: Optional[dict]) -> Optional[dict]:
    if payload is None:
        return None
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        cleaned[key] = value
    return cleaned


def create_audit_event(
    db: Session,
    *,
    actor_user_id: Optional[str],
    action: models.AuditAction,
    entity_type: str,
    entity_id: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> models.AuditEvent:
    event = models.AuditEvent(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before=_jsonable(before),
        after=_jsonable(after),
        ip_address=ip_address,
    )
    db.add(event)
    db.flush()
    return event


def log_event(
    db: Session,
    *,
    actor_user_id: Optional[str],
    action: models.AuditAction,
    entity_type: str,
    entity_id: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    ip_address: Optional[str] = None,
    critical: bool = False,
    commit: bool = True,
) -> AuditResult:
    """
    Best-effort audit event logger.

    Call it after the primary change has been committed. With `commit=True`
    the event is committed on its own, so a failure here rolls back only the
    audit row.
    - For critical callers, raise on failure.
    - Otherwise log a warning and report `written=False`.
    """
    try:
        event = create_audit_event(
            db,
            actor_user_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
            ip_address=ip_address,
        )
        if commit:
            db.commit()
        return AuditResult(written=True, event=event)
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Failed to log audit event",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": getattr(action, "value", action),
                "critical": critical,
            },
        )
        if critical:
            raise
        return AuditResult(written=False, error=str(exc))


def list_audit_events(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    clinic_id: Optional[str] = None,
    limit: int = 200,
) -> Sequence[models.AuditEvent]:
    query = db.query(models.AuditEvent)
    if entity_type:
        query = query.filter(models.AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    if actor_user_id:
        query = query.filter(models.AuditEvent.actor_user_id == actor_user_id)
    if clinic_id:
        query = query.join(
            account_models.User,
            account_models.User.id == models.AuditEvent.actor_user_id,
        ).filter(account_models.User.clinic_id == clinic_id)
    return query.order_by(models.AuditEvent.occurred_at.desc()).limit(limit).all()
