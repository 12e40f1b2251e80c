from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import EmailStatus, NotificationType


class NotificationRead(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    read_at: Optional[datetime] = None
    email_sent: bool
    email_sent_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    items: List[NotificationRead]
    total: int
    unread_count: int
    limit: int
    offset: int


class UnreadCount(BaseModel):
    count: int


class NotificationPreferenceRead(BaseModel):
    id: str
    user_id: str
    email_enabled: bool
    deadline_reminders: bool
    unsigned_assessments: bool
    supervision_reminders: bool
    subgoal_signed: bool
    assessment_signed: bool
    days_before_deadline: int

    class Config:
        from_attributes = True


class NotificationPreferenceUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    deadline_reminders: Optional[bool] = None
    unsigned_assessments: Optional[bool] = None
    supervision_reminders: Optional[bool] = None
    subgoal_signed: Optional[bool] = None
    assessment_signed: Optional[bool] = None
    days_before_deadline: Optional[int] = Field(default=None, ge=1, le=90)


class EmailLogRead(BaseModel):
    id: str
    notification_id: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
    recipient: str
    subject: str
    template_key: str
    status: EmailStatus
    error: Optional[str] = None
    context_json: Optional[dict] = None
    correlation_id: Optional[str] = None

    class Config:
        from_attributes = True
