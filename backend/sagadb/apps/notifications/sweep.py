"""Periodic reminder sweep.

Safe to run any number of times: every check looks for a recent
notification of the same kind before creating a new one, so repeated runs
inside the cooldown window create nothing.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, time, timedelta, timezone
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.supervision import services as supervision_services
from sagadb.apps.trainees import models as trainee_models

from . import models
from .service import create_notification, get_preferences

logger = logging.getLogger(__name__)

SUPERVISION_GAP_DAYS = 90
ROTATION_WINDOW_DAYS = 7
DEFAULT_DEADLINE_DAYS = 30
REMINDER_COOLDOWN_DAYS = 7
UNSIGNED_COOLDOWN_HOURS = 24


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _midnight(value) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _recently_notified(
    db: Session,
    *,
    user_id: str,
    type: models.NotificationType,
    since: datetime,
    message_contains: Optional[str] = None,
) -> bool:
    query = db.query(models.Notification.id).filter(
        models.Notification.user_id == user_id,
        models.Notification.type == type,
        models.Notification.created_at >= since,
    )
    if message_contains:
        query = query.filter(models.Notification.message.contains(message_contains, autoescape=True))
    return query.first() is not None


def _run_item(db: Session, label: str, item_id: str, fn: Callable[[], bool]) -> bool:
    """Run one unit of work in its own transaction. Returns True if a notification was created."""
    try:
        created = fn()
        db.commit()
        return created
    except Exception:
        db.rollback()
        logger.exception("Notification sweep item failed", extra={"check": label, "item_id": item_id})
        return False


# ---------------------------------------------------------------------------
# CHECKS
# ---------------------------------------------------------------------------


def check_supervision_gaps(db: Session, *, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    cutoff = now - timedelta(days=SUPERVISION_GAP_DAYS)
    cooldown = now - timedelta(days=REMINDER_COOLDOWN_DAYS)
    created = 0

    profiles = db.query(trainee_models.TraineeProfile).all()
    for profile in profiles:
        user_id = profile.user_id

        def _process(profile=profile, user_id=user_id) -> bool:
            last_meeting = supervision_services.last_active_meeting(db, profile.id)
            last_at = _midnight(last_meeting.date) if last_meeting else None
            if last_at is not None and last_at >= cutoff:
                return False

            pref = get_preferences(db, user_id)
            if pref is not None and not pref.supervision_reminders:
                return False
            if _recently_notified(
                db,
                user_id=user_id,
                type=models.NotificationType.SUPERVISION_REMINDER,
                since=cooldown,
            ):
                return False

            if last_at is None:
                days_since = SUPERVISION_GAP_DAYS
            else:
                days_since = (now - last_at) // timedelta(days=1)
            create_notification(
                db,
                user_id=user_id,
                type=models.NotificationType.SUPERVISION_REMINDER,
                title="Påminnelse om handledning",
                message=(
                    f"Det har gått {days_since} dagar sedan ditt senaste handledarsamtal. "
                    "Boka ett nytt möte!"
                ),
                link="/supervision",
                now=now,
            )
            return True

        if _run_item(db, "supervision_gaps", profile.id, _process):
            created += 1
    return created


def check_rotations(db: Session, *, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    today = now.date()
    window_end = today + timedelta(days=ROTATION_WINDOW_DAYS)
    cooldown = now - timedelta(days=REMINDER_COOLDOWN_DAYS)
    created = 0

    passes = (
        (
            rotation_models.Rotation.start_date,
            "start_date",
            models.NotificationType.ROTATION_STARTING,
            "Placering startar snart",
            "startar",
        ),
        (
            rotation_models.Rotation.end_date,
            "end_date",
            models.NotificationType.ROTATION_ENDING,
            "Placering slutar snart",
            "slutar",
        ),
    )

    for column, attr, notification_type, title, verb in passes:
        rotations = (
            db.query(rotation_models.Rotation)
            .filter(column >= today, column <= window_end)
            .all()
        )
        for rotation in rotations:

            def _process(rotation=rotation) -> bool:
                owner_id = rotation.trainee_profile.user_id
                if _recently_notified(
                    db,
                    user_id=owner_id,
                    type=notification_type,
                    since=cooldown,
                    message_contains=rotation.unit,
                ):
                    return False
                days_until = (getattr(rotation, attr) - today).days
                create_notification(
                    db,
                    user_id=owner_id,
                    type=notification_type,
                    title=title,
                    message=f"Din placering på {rotation.unit} {verb} om {days_until} dagar",
                    link="/calendar",
                    now=now,
                )
                return True

            if _run_item(db, notification_type.value.lower(), rotation.id, _process):
                created += 1
    return created


def check_deadlines(db: Session, *, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    today = now.date()
    cooldown = now - timedelta(days=REMINDER_COOLDOWN_DAYS)
    created = 0

    profiles = db.query(trainee_models.TraineeProfile).all()
    for profile in profiles:

        def _process(profile=profile) -> bool:
            days_until = (profile.planned_end_date - today).days
            pref = get_preferences(db, profile.user_id)
            window = pref.days_before_deadline if pref is not None else DEFAULT_DEADLINE_DAYS
            if not 0 < days_until <= window:
                return False
            if pref is not None and not pref.deadline_reminders:
                return False
            if _recently_notified(
                db,
                user_id=profile.user_id,
                type=models.NotificationType.DEADLINE_REMINDER,
                since=cooldown,
            ):
                return False
            create_notification(
                db,
                user_id=profile.user_id,
                type=models.NotificationType.DEADLINE_REMINDER,
                title="Påminnelse om slutdatum",
                message=f"Ditt planerade slutdatum för utbildningen är om {days_until} dagar",
                link="/dashboard",
                now=now,
            )
            return True

        if _run_item(db, "deadlines", profile.id, _process):
            created += 1
    return created


def check_unsigned_assessments(db: Session, *, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    cooldown = now - timedelta(hours=UNSIGNED_COOLDOWN_HOURS)
    created = 0

    pending = (
        db.query(assessment_models.Assessment)
        .filter(
            assessment_models.Assessment.signed_at.is_(None),
            assessment_models.Assessment.assessor_id.is_not(None),
        )
        .order_by(assessment_models.Assessment.date.asc(), assessment_models.Assessment.created_at.asc())
        .all()
    )

    by_assessor: "OrderedDict[str, list]" = OrderedDict()
    for assessment in pending:
        by_assessor.setdefault(assessment.assessor_id, []).append(assessment)

    for assessor_id, assessments in by_assessor.items():

        def _process(assessor_id=assessor_id, assessments=assessments) -> bool:
            pref = get_preferences(db, assessor_id)
            if pref is not None and not pref.unsigned_assessments:
                return False
            if _recently_notified(
                db,
                user_id=assessor_id,
                type=models.NotificationType.UNSIGNED_ASSESSMENT,
                since=cooldown,
            ):
                return False
            if len(assessments) == 1:
                first = assessments[0]
                trainee_name = first.trainee_profile.user.name
                message = (
                    f"{trainee_name} har en {first.type.value}-bedömning som väntar på din signatur"
                )
            else:
                message = f"Du har {len(assessments)} osignerade bedömningar som väntar"
            create_notification(
                db,
                user_id=assessor_id,
                type=models.NotificationType.UNSIGNED_ASSESSMENT,
                title="Osignerade bedömningar",
                message=message,
                link="/assessments",
                now=now,
            )
            return True

        if _run_item(db, "unsigned_assessments", assessor_id, _process):
            created += 1
    return created


# ---------------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------------


CHECKS = (
    ("supervision_reminders", check_supervision_gaps),
    ("rotation_reminders", check_rotations),
    ("deadline_reminders", check_deadlines),
    ("unsigned_assessment_reminders", check_unsigned_assessments),
)


def run_notification_checks(db: Session, *, now: Optional[datetime] = None) -> dict:
    now = now or _utcnow()
    summary: dict = {}
    for name, check in CHECKS:
        try:
            summary[name] = check(db, now=now)
        except Exception:
            db.rollback()
            logger.exception("Notification check failed", extra={"check": name})
            summary[name] = None
    logger.info("Notification sweep completed", extra={"summary": summary})
    return summary
