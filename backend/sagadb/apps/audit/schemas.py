from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .models import AuditAction


class AuditEventRead(BaseModel):
    id: str
    actor_user_id: Optional[str] = None
    action: AuditAction
    entity_type: str
    entity_id: str
    before: Optional[dict] = None
    after: Optional[dict] = None
    ip_address: Optional[str] = None
    occurred_at: datetime

    class Config:
        from_attributes = True
