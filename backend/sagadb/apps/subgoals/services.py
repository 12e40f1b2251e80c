# backend/sagadb/apps/subgoals/services.py

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.certificates import models as certificate_models
from sagadb.apps.courses import models as course_models
from sagadb.apps.notifications import service as notification_service
from sagadb.apps.policy import access, locks
from sagadb.apps.policy.errors import NotFound
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import utcnow

from . import models

logger = logging.getLogger(__name__)


def calculate_progress_percentage(completed: int, total: int) -> int:
    """Share of completed items as a whole percent, halves rounded up. Zero total gives 0."""
    if total <= 0:
        return 0
    # Integer form of floor(completed * 100 / total + 0.5).
    return (completed * 200 + total) // (2 * total)


# ---------------------------------------------------------------------------
# GOAL CATALOGUE
# ---------------------------------------------------------------------------


def list_goal_specs(db: Session) -> List[dict]:
    counts = dict(
        db.query(models.SubGoal.goal_spec_id, func.count(models.SubGoal.id))
        .group_by(models.SubGoal.goal_spec_id)
        .all()
    )
    specs = db.query(models.GoalSpec).order_by(models.GoalSpec.created_at.desc()).all()
    return [{"spec": spec, "sub_goal_count": counts.get(spec.id, 0)} for spec in specs]


def list_spec_sub_goals(db: Session, spec_id: str) -> List[models.SubGoal]:
    if db.get(models.GoalSpec, spec_id) is None:
        raise NotFound("Goal specification not found")
    return (
        db.query(models.SubGoal)
        .filter(models.SubGoal.goal_spec_id == spec_id)
        .order_by(models.SubGoal.category.asc(), models.SubGoal.sort_order.asc())
        .all()
    )


def latest_goal_spec(db: Session, track_type: trainee_models.TrackType) -> Optional[models.GoalSpec]:
    return (
        db.query(models.GoalSpec)
        .filter(models.GoalSpec.track_type == track_type)
        .order_by(models.GoalSpec.created_at.desc())
        .first()
    )


def initialize_progress(db: Session, profile: trainee_models.TraineeProfile) -> int:
    """Create EJ_PABORJAD rows for every sub-goal of the latest spec for the track. Flushes only."""
    spec = latest_goal_spec(db, profile.track_type)
    if spec is None:
        logger.warning(
            "No goal specification for track; progress not initialised",
            extra={"track_type": getattr(profile.track_type, "value", profile.track_type)},
        )
        return 0
    existing = {
        row.sub_goal_id
        for row in db.query(models.TraineeSubGoalProgress.sub_goal_id)
        .filter(models.TraineeSubGoalProgress.trainee_profile_id == profile.id)
        .all()
    }
    created = 0
    for sub_goal in spec.sub_goals:
        if sub_goal.id in existing:
            continue
        db.add(
            models.TraineeSubGoalProgress(
                trainee_profile_id=profile.id,
                sub_goal_id=sub_goal.id,
                status=models.SubGoalStatus.EJ_PABORJAD,
            )
        )
        created += 1
    db.flush()
    return created


def resolve_sub_goals(db: Session, sub_goal_ids: Optional[List[str]]) -> List[models.SubGoal]:
    """Load sub-goals for a link list; unknown ids are ignored."""
    if not sub_goal_ids:
        return []
    return db.query(models.SubGoal).filter(models.SubGoal.id.in_(set(sub_goal_ids))).all()


# ---------------------------------------------------------------------------
# PROGRESS
# ---------------------------------------------------------------------------


def list_progress(
    db: Session,
    trainee_profile_id: str,
    *,
    status: Optional[models.SubGoalStatus] = None,
    category: Optional[models.SubGoalCategory] = None,
) -> List[models.TraineeSubGoalProgress]:
    query = (
        db.query(models.TraineeSubGoalProgress)
        .join(models.SubGoal, models.SubGoal.id == models.TraineeSubGoalProgress.sub_goal_id)
        .filter(models.TraineeSubGoalProgress.trainee_profile_id == trainee_profile_id)
    )
    if status:
        query = query.filter(models.TraineeSubGoalProgress.status == status)
    if category:
        query = query.filter(models.SubGoal.category == category)
    return query.order_by(models.SubGoal.category.asc(), models.SubGoal.sort_order.asc()).all()


def collect_evidence(db: Session, trainee_profile_id: str) -> Dict[str, Dict[str, list]]:
    """Map sub_goal_id to the trainee's records linked to it."""
    evidence: Dict[str, Dict[str, list]] = defaultdict(
        lambda: {"rotations": [], "courses": [], "assessments": [], "certificates": []}
    )
    sources = (
        ("rotations", rotation_models.Rotation),
        ("courses", course_models.Course),
        ("assessments", assessment_models.Assessment),
        ("certificates", certificate_models.Certificate),
    )
    for key, model in sources:
        records = db.query(model).filter(model.trainee_profile_id == trainee_profile_id).all()
        for record in records:
            for sub_goal in record.sub_goals:
                evidence[sub_goal.id][key].append(record)
    return evidence


def get_progress(db: Session, progress_id: str) -> models.TraineeSubGoalProgress:
    progress = db.get(models.TraineeSubGoalProgress, progress_id)
    if progress is None:
        raise NotFound("Sub-goal progress not found")
    return progress


def update_progress(
    db: Session,
    *,
    actor: User,
    progress_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.TraineeSubGoalProgress:
    progress = get_progress(db, progress_id)
    locks.ensure_mutable(progress)
    access.ensure_trainee_write(db, actor, progress.trainee_profile_id)

    before = {"status": progress.status, "notes": progress.notes}
    if changes.get("status") is not None:
        progress.status = changes["status"]
    if "notes" in changes:
        progress.notes = changes["notes"]
    db.add(progress)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="TraineeSubGoalProgress",
        entity_id=progress.id,
        before=before,
        after={"status": progress.status, "notes": progress.notes},
        ip_address=ip_address,
    )
    return progress


def sign_progress(
    db: Session,
    *,
    actor: User,
    progress_id: str,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
) -> models.TraineeSubGoalProgress:
    locks.ensure_signer_role(actor)
    progress = get_progress(db, progress_id)
    locks.ensure_signable(progress)
    access.ensure_trainee_access(db, actor, progress.trainee_profile_id)

    locks.apply_signature(progress, actor, now or utcnow())
    progress.status = models.SubGoalStatus.UPPNADD
    db.add(progress)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.SIGN,
        entity_type="TraineeSubGoalProgress",
        entity_id=progress.id,
        after={"signed_at": progress.signed_at, "signed_by": actor.name},
        ip_address=ip_address,
    )
    profile = db.get(trainee_models.TraineeProfile, progress.trainee_profile_id)
    sub_goal = progress.sub_goal
    notification_service.notify_signature(
        db,
        trainee_user_id=profile.user_id,
        signer_name=actor.name,
        kind="subgoal",
        description=f"delmål {sub_goal.code}: {sub_goal.title}",
    )
    return progress


# ---------------------------------------------------------------------------
# SUMMARY
# ---------------------------------------------------------------------------


def progress_summary(db: Session, trainee_profile_id: str) -> dict:
    rows = (
        db.query(models.SubGoal.category, models.TraineeSubGoalProgress.status)
        .join(models.SubGoal, models.SubGoal.id == models.TraineeSubGoalProgress.sub_goal_id)
        .filter(models.TraineeSubGoalProgress.trainee_profile_id == trainee_profile_id)
        .all()
    )

    by_status: Dict[models.SubGoalStatus, int] = defaultdict(int)
    by_category: Dict[models.SubGoalCategory, Dict[str, int]] = {}
    for category, status in rows:
        by_status[status] += 1
        bucket = by_category.setdefault(category, {"total": 0, "completed": 0})
        bucket["total"] += 1
        if status == models.SubGoalStatus.UPPNADD:
            bucket["completed"] += 1

    total = len(rows)
    completed = by_status[models.SubGoalStatus.UPPNADD]
    return {
        "total": total,
        "completed": completed,
        "in_progress": by_status[models.SubGoalStatus.PAGAENDE],
        "not_started": by_status[models.SubGoalStatus.EJ_PABORJAD],
        "percentage": calculate_progress_percentage(completed, total),
        "by_category": [
            {
                "category": category,
                "total": bucket["total"],
                "completed": bucket["completed"],
                "percentage": calculate_progress_percentage(bucket["completed"], bucket["total"]),
            }
            for category, bucket in sorted(by_category.items(), key=lambda item: item[0].value)
        ],
    }
