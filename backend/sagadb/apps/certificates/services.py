# backend/sagadb/apps/certificates/services.py

from __future__ import annotations

import json
from typing import BinaryIO, List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import NotFound, ValidationFailed
from sagadb.apps.subgoals import services as subgoal_services

from . import models, storage

_FIELDS = ("type", "title", "issue_date", "issuer", "parsed_fields")


def _snapshot(certificate: models.Certificate) -> dict:
    return {
        "type": certificate.type,
        "title": certificate.title,
        "issue_date": certificate.issue_date,
        "issuer": certificate.issuer,
        "file_name": certificate.file_name,
        "sub_goal_ids": sorted(sg.id for sg in certificate.sub_goals),
    }


def parse_sub_goal_ids(raw: Optional[str]) -> List[str]:
    """Form uploads carry the link list as a JSON array string."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        raise ValidationFailed("sub_goal_ids must be a JSON array")
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationFailed("sub_goal_ids must be a JSON array")
    return value


def list_certificates(
    db: Session,
    trainee_profile_id: str,
    *,
    type: Optional[models.CertificateType] = None,
) -> List[models.Certificate]:
    query = db.query(models.Certificate).filter(models.Certificate.trainee_profile_id == trainee_profile_id)
    if type:
        query = query.filter(models.Certificate.type == type)
    return query.order_by(models.Certificate.created_at.desc()).all()


def get_certificate(db: Session, certificate_id: str) -> models.Certificate:
    certificate = db.get(models.Certificate, certificate_id)
    if certificate is None:
        raise NotFound("Certificate not found")
    return certificate


def get_accessible_certificate(db: Session, actor: User, certificate_id: str) -> models.Certificate:
    certificate = get_certificate(db, certificate_id)
    access.ensure_trainee_access(db, actor, certificate.trainee_profile_id)
    return certificate


def upload_certificate(
    db: Session,
    *,
    actor: User,
    data: dict,
    file_name: Optional[str],
    content_type: Optional[str],
    source: BinaryIO,
    ip_address: Optional[str] = None,
) -> models.Certificate:
    access.ensure_trainee_write(db, actor, data["trainee_profile_id"])
    ext = storage.resolve_extension(file_name, content_type)

    relative_path, size = storage.save_upload(data["trainee_profile_id"], ext, source)
    try:
        certificate = models.Certificate(
            trainee_profile_id=data["trainee_profile_id"],
            type=data.get("type") or models.CertificateType.OVRIGT,
            title=data.get("title"),
            issue_date=data.get("issue_date"),
            issuer=data.get("issuer"),
            file_path=relative_path,
            file_name=file_name or f"intyg{ext}",
            mime_type=storage.guess_mime_type(ext, content_type),
            file_size=size,
        )
        certificate.sub_goals = subgoal_services.resolve_sub_goals(db, data.get("sub_goal_ids"))
        db.add(certificate)
        db.commit()
    except Exception:
        db.rollback()
        storage.delete_if_exists(relative_path)
        raise
    db.refresh(certificate)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="Certificate",
        entity_id=certificate.id,
        after=_snapshot(certificate),
        ip_address=ip_address,
    )
    return certificate


def update_certificate(
    db: Session,
    *,
    actor: User,
    certificate_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.Certificate:
    certificate = get_certificate(db, certificate_id)
    access.ensure_trainee_write(db, actor, certificate.trainee_profile_id)

    before = _snapshot(certificate)
    for field in _FIELDS:
        if field in changes:
            if field == "type" and changes[field] is None:
                continue
            setattr(certificate, field, changes[field])
    if "sub_goal_ids" in changes:
        certificate.sub_goals = subgoal_services.resolve_sub_goals(db, changes["sub_goal_ids"])
    db.add(certificate)
    db.commit()
    db.refresh(certificate)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="Certificate",
        entity_id=certificate.id,
        before=before,
        after=_snapshot(certificate),
        ip_address=ip_address,
    )
    return certificate


def delete_certificate(
    db: Session,
    *,
    actor: User,
    certificate_id: str,
    ip_address: Optional[str] = None,
) -> None:
    certificate = get_certificate(db, certificate_id)
    access.ensure_trainee_write(db, actor, certificate.trainee_profile_id)

    before = _snapshot(certificate)
    file_path = certificate.file_path
    db.delete(certificate)
    db.commit()
    storage.delete_if_exists(file_path)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.DELETE,
        entity_type="Certificate",
        entity_id=certificate_id,
        before=before,
        ip_address=ip_address,
    )
