from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationType(str, enum.Enum):
    DEADLINE_REMINDER = "DEADLINE_REMINDER"
    UNSIGNED_ASSESSMENT = "UNSIGNED_ASSESSMENT"
    SUPERVISION_REMINDER = "SUPERVISION_REMINDER"
    SUBGOAL_SIGNED = "SUBGOAL_SIGNED"
    ASSESSMENT_SIGNED = "ASSESSMENT_SIGNED"
    ROTATION_STARTING = "ROTATION_STARTING"
    ROTATION_ENDING = "ROTATION_ENDING"
    GENERAL = "GENERAL"


class EmailStatus(str, enum.Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED_NO_PROVIDER = "SKIPPED_NO_PROVIDER"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        Index("ix_notifications_user_type_created", "user_id", "type", "created_at"),
        Index("ix_notifications_email_pending", "email_sent", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(
        SAEnum(NotificationType, name="notification_type_enum", native_enum=False),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(512), nullable=True)

    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    email_sent = Column(Boolean, nullable=False, default=False)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"


class NotificationPreference(Base):
    """Per-user switches. A missing row means every switch is on."""

    __tablename__ = "notification_preferences"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    email_enabled = Column(Boolean, nullable=False, default=True)
    deadline_reminders = Column(Boolean, nullable=False, default=True)
    unsigned_assessments = Column(Boolean, nullable=False, default=True)
    supervision_reminders = Column(Boolean, nullable=False, default=True)
    subgoal_signed = Column(Boolean, nullable=False, default=True)
    assessment_signed = Column(Boolean, nullable=False, default=True)
    days_before_deadline = Column(Integer, nullable=False, default=30)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class EmailLog(Base):
    __tablename__ = "email_logs"
    __table_args__ = (
        Index("ix_email_logs_status_created", "status", "created_at"),
        Index("ix_email_logs_recipient", "recipient"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    notification_id = Column(
        String(36),
        ForeignKey("notifications.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    recipient = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    template_key = Column(String(128), nullable=False, index=True)
    status = Column(
        SAEnum(EmailStatus, name="email_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    error = Column(Text, nullable=True)
    context_json = Column(JSON, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<EmailLog id={self.id} recipient={self.recipient} status={self.status}>"
