from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from sagadb.security import require_roles
from sagadb.apps.accounts.models import AccountRole, User
from sagadb.database import get_read_db

from . import schemas, services


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/", response_model=List[schemas.AuditEventRead])
def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(
        require_roles(
            AccountRole.ADMIN,
            AccountRole.STUDY_DIRECTOR,
        )
    ),
):
    # Study directors see what people in their own clinic did.
    clinic_id = None
    if current_user.role == AccountRole.STUDY_DIRECTOR:
        if not current_user.clinic_id:
            return []
        clinic_id = current_user.clinic_id
    return services.list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        clinic_id=clinic_id,
        limit=limit,
    )
