from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from typing import Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts import models as account_models
from sagadb.apps.policy.errors import NotFound
from sagadb.database import WriteSessionLocal

from . import models, providers

logger = logging.getLogger(__name__)

APP_URL = os.getenv("APP_URL", "http://localhost:5173")

# Which preference switch governs each notification type. GENERAL has none.
PREFERENCE_FIELDS = {
    models.NotificationType.DEADLINE_REMINDER: "deadline_reminders",
    models.NotificationType.UNSIGNED_ASSESSMENT: "unsigned_assessments",
    models.NotificationType.SUPERVISION_REMINDER: "supervision_reminders",
    models.NotificationType.SUBGOAL_SIGNED: "subgoal_signed",
    models.NotificationType.ASSESSMENT_SIGNED: "assessment_signed",
}

_SIGNATURE_KINDS = {
    "assessment": (models.NotificationType.ASSESSMENT_SIGNED, "Bedömning signerad", "/assessments"),
    "subgoal": (models.NotificationType.SUBGOAL_SIGNED, "Delmål signerat", "/subgoals"),
    "supervision": (models.NotificationType.GENERAL, "Handledarsamtal signerat", "/supervision"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# PREFERENCES
# ---------------------------------------------------------------------------


def get_preferences(db: Session, user_id: str) -> Optional[models.NotificationPreference]:
    return (
        db.query(models.NotificationPreference)
        .filter(models.NotificationPreference.user_id == user_id)
        .first()
    )


def get_or_create_preferences(db: Session, user_id: str) -> models.NotificationPreference:
    pref = get_preferences(db, user_id)
    if pref is None:
        pref = models.NotificationPreference(
            user_id=user_id,
            email_enabled=True,
            deadline_reminders=True,
            unsigned_assessments=True,
            supervision_reminders=True,
            subgoal_signed=True,
            assessment_signed=True,
            days_before_deadline=30,
        )
        db.add(pref)
        db.flush()
    return pref


def update_preferences(db: Session, user_id: str, changes: dict) -> models.NotificationPreference:
    pref = get_or_create_preferences(db, user_id)
    for field, value in changes.items():
        setattr(pref, field, value)
    db.add(pref)
    db.commit()
    return pref


def preferences_allow(
    pref: Optional[models.NotificationPreference],
    notification_type: models.NotificationType,
) -> bool:
    """No stored preferences means everything is enabled."""
    if pref is None:
        return True
    field = PREFERENCE_FIELDS.get(notification_type)
    if field is None:
        return True
    return bool(getattr(pref, field))


# ---------------------------------------------------------------------------
# IN-APP NOTIFICATIONS
# ---------------------------------------------------------------------------


def create_notification(
    db: Session,
    *,
    user_id: str,
    type: models.NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Notification:
    notification = models.Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        read=False,
        email_sent=False,
        created_at=now or _utcnow(),
    )
    db.add(notification)
    db.flush()
    return notification


def list_notifications(
    db: Session,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[models.Notification], int, int]:
    """Return (page, total matching, total unread)."""
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        query = query.filter(models.Notification.read.is_(False))
    total = query.count()
    items = (
        query.order_by(models.Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total, count_unread(db, user_id)


def count_unread(db: Session, user_id: str) -> int:
    return (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        )
        .count()
    )


def _get_own(db: Session, user_id: str, notification_id: str) -> models.Notification:
    notification = (
        db.query(models.Notification)
        .filter(
            models.Notification.id == notification_id,
            models.Notification.user_id == user_id,
        )
        .first()
    )
    if notification is None:
        raise NotFound("Notification not found")
    return notification


def mark_read(
    db: Session,
    user_id: str,
    notification_id: str,
    *,
    now: Optional[datetime] = None,
) -> models.Notification:
    notification = _get_own(db, user_id, notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = now or _utcnow()
        db.add(notification)
        db.commit()
    return notification


def mark_all_read(db: Session, user_id: str, *, now: Optional[datetime] = None) -> int:
    updated = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        )
        .update({"read": True, "read_at": now or _utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, user_id: str, notification_id: str) -> None:
    notification = _get_own(db, user_id, notification_id)
    db.delete(notification)
    db.commit()


def delete_read(db: Session, user_id: str) -> int:
    deleted = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(True),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def notify_signature(
    db: Session,
    *,
    trainee_user_id: str,
    signer_name: str,
    kind: str,
    description: str,
) -> Optional[models.Notification]:
    """
    Tell the trainee that a record was signed.

    Called after the signature is committed. A failure here is logged and
    never undoes the signature.
    """
    notification_type, title, link = _SIGNATURE_KINDS[kind]
    try:
        notification = create_notification(
            db,
            user_id=trainee_user_id,
            type=notification_type,
            title=title,
            message=f"{signer_name} har signerat {description}",
            link=link,
        )
        db.commit()
        return notification
    except Exception:
        db.rollback()
        logger.warning(
            "Failed to create signature notification",
            extra={"user_id": trainee_user_id, "kind": kind},
        )
        return None


# ---------------------------------------------------------------------------
# EMAIL
# ---------------------------------------------------------------------------


def send_email(
    template_key: str,
    recipient: str,
    subject: str,
    context: dict,
    correlation_id: Optional[str],
    critical: bool = False,
    *,
    notification_id: Optional[str] = None,
    db: Optional[Session] = None,
) -> models.EmailLog:
    owns_session = db is None
    db = db or WriteSessionLocal()
    log = models.EmailLog(
        notification_id=notification_id,
        recipient=recipient,
        subject=subject,
        template_key=template_key,
        status=models.EmailStatus.QUEUED,
        context_json=context or {},
        correlation_id=correlation_id,
    )
    try:
        db.add(log)
        db.flush()

        provider, configured = providers.get_email_provider()
        if not configured:
            log.status = models.EmailStatus.SKIPPED_NO_PROVIDER
            log.error = "No provider configured"
            db.add(log)
            if owns_session:
                db.commit()
            return log

        try:
            provider.send(
                template_key=template_key,
                recipient=recipient,
                subject=subject,
                context=context or {},
                correlation_id=correlation_id,
            )
            log.status = models.EmailStatus.SENT
            log.sent_at = _utcnow()
        except Exception as exc:
            log.status = models.EmailStatus.FAILED
            log.error = str(exc)
            logger.warning(
                "Email delivery failed",
                extra={"recipient": recipient, "template_key": template_key, "correlation_id": correlation_id},
            )
            if critical:
                db.add(log)
                if owns_session:
                    db.commit()
                raise
        db.add(log)
        if owns_session:
            db.commit()
        return log
    finally:
        if owns_session:
            db.close()


def send_pending_notification_emails(db: Session, *, now: Optional[datetime] = None) -> dict:
    """
    Email every notification that has not been emailed yet.

    Each notification is committed on its own so a failure halfway leaves
    the earlier ones marked as sent.
    """
    now = now or _utcnow()
    sent = 0
    skipped = 0
    undelivered = 0

    pending = (
        db.query(models.Notification)
        .filter(models.Notification.email_sent.is_(False))
        .order_by(models.Notification.created_at.asc())
        .all()
    )

    for notification in pending:
        try:
            pref = get_preferences(db, notification.user_id)
            wants_email = pref is None or pref.email_enabled
            if not wants_email or not preferences_allow(pref, notification.type):
                notification.email_sent = True
                notification.email_sent_at = now
                db.add(notification)
                db.commit()
                skipped += 1
                continue

            user = db.get(account_models.User, notification.user_id)
            if user is None or not user.email:
                notification.email_sent = True
                db.add(notification)
                db.commit()
                skipped += 1
                continue

            log = send_email(
                "notification",
                user.email,
                f"SAGA: {notification.title}",
                {
                    "title": notification.title,
                    "message": notification.message,
                    "link": f"{APP_URL}{notification.link}" if notification.link else APP_URL,
                    "type": notification.type.value,
                },
                correlation_id=f"notification:{notification.id}",
                critical=False,
                notification_id=notification.id,
                db=db,
            )
            notification.email_sent = True
            notification.email_sent_at = now if log.status == models.EmailStatus.SENT else None
            db.add(notification)
            db.commit()
            if log.status == models.EmailStatus.SENT:
                sent += 1
            else:
                undelivered += 1
        except Exception:
            db.rollback()
            undelivered += 1
            logger.exception(
                "Failed to process notification email",
                extra={"notification_id": notification.id},
            )

    return {"pending": len(pending), "sent": sent, "skipped": skipped, "undelivered": undelivered}
