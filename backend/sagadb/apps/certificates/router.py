from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit.services import client_ip
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import NotFound, PolicyError, as_http
from sagadb.database import get_db, get_read_db
from sagadb.security import get_current_active_user

from . import schemas, services, storage
from .models import CertificateType

router = APIRouter(prefix="/certificates", tags=["certificates"])


@router.get("/", response_model=List[schemas.CertificateRead])
def list_certificates(
    trainee_profile_id: str,
    type: Optional[CertificateType] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        access.ensure_trainee_access(db, current_user, trainee_profile_id)
    except PolicyError as exc:
        raise as_http(exc)
    return services.list_certificates(db, trainee_profile_id, type=type)


@router.get("/{certificate_id}", response_model=schemas.CertificateRead)
def get_certificate(
    certificate_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.get_accessible_certificate(db, current_user, certificate_id)
    except PolicyError as exc:
        raise as_http(exc)


@router.get("/{certificate_id}/file")
def download_certificate_file(
    certificate_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        certificate = services.get_accessible_certificate(db, current_user, certificate_id)
        path = storage.absolute_path(certificate.file_path)
        if not path.exists():
            raise NotFound("Certificate file is missing")
    except PolicyError as exc:
        raise as_http(exc)
    return FileResponse(path, media_type=certificate.mime_type, filename=certificate.file_name)


@router.post("/upload", response_model=schemas.CertificateRead, status_code=status.HTTP_201_CREATED)
def upload_certificate(
    request: Request,
    trainee_profile_id: str = Form(...),
    type: Optional[CertificateType] = Form(None),
    title: Optional[str] = Form(None),
    issuer: Optional[str] = Form(None),
    issue_date: Optional[date] = Form(None),
    sub_goal_ids: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        data = {
            "trainee_profile_id": trainee_profile_id,
            "type": type,
            "title": title,
            "issuer": issuer,
            "issue_date": issue_date,
            "sub_goal_ids": services.parse_sub_goal_ids(sub_goal_ids),
        }
        return services.upload_certificate(
            db,
            actor=current_user,
            data=data,
            file_name=file.filename,
            content_type=file.content_type,
            source=file.file,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.patch("/{certificate_id}", response_model=schemas.CertificateRead)
def update_certificate(
    certificate_id: str,
    payload: schemas.CertificateUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.update_certificate(
            db,
            actor=current_user,
            certificate_id=certificate_id,
            changes=payload.model_dump(exclude_unset=True),
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)


@router.delete("/{certificate_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_certificate(
    certificate_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_certificate(
            db,
            actor=current_user,
            certificate_id=certificate_id,
            ip_address=client_ip(request),
        )
    except PolicyError as exc:
        raise as_http(exc)
    return None
