from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import User
from sagadb.apps.audit import services as audit_services
from sagadb.apps.audit.models import AuditAction
from sagadb.apps.policy import access
from sagadb.apps.policy.errors import NotFound, ValidationFailed
from sagadb.apps.subgoals import services as subgoal_services

from . import models

_FIELDS = ("title", "provider", "start_date", "end_date", "hours", "notes")


def _snapshot(course: models.Course) -> dict:
    data = {field: getattr(course, field) for field in _FIELDS}
    data["sub_goal_ids"] = sorted(sg.id for sg in course.sub_goals)
    return data


def _validate(start_date: date, end_date: Optional[date], hours: Optional[int]) -> None:
    if end_date is not None and end_date < start_date:
        raise ValidationFailed("End date cannot be before start date")
    if hours is not None and hours <= 0:
        raise ValidationFailed("Hours must be positive")


def list_courses(db: Session, trainee_profile_id: str) -> List[models.Course]:
    return (
        db.query(models.Course)
        .filter(models.Course.trainee_profile_id == trainee_profile_id)
        .order_by(models.Course.start_date.desc())
        .all()
    )


def get_course(db: Session, course_id: str) -> models.Course:
    course = db.get(models.Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    return course


def get_accessible_course(db: Session, actor: User, course_id: str) -> models.Course:
    course = get_course(db, course_id)
    access.ensure_trainee_access(db, actor, course.trainee_profile_id)
    return course


def create_course(db: Session, *, actor: User, data: dict, ip_address: Optional[str] = None) -> models.Course:
    access.ensure_trainee_write(db, actor, data["trainee_profile_id"])
    _validate(data["start_date"], data.get("end_date"), data.get("hours"))

    course = models.Course(
        trainee_profile_id=data["trainee_profile_id"],
        **{field: data.get(field) for field in _FIELDS if field in data},
    )
    course.sub_goals = subgoal_services.resolve_sub_goals(db, data.get("sub_goal_ids"))
    db.add(course)
    db.commit()
    db.refresh(course)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.CREATE,
        entity_type="Course",
        entity_id=course.id,
        after=_snapshot(course),
        ip_address=ip_address,
    )
    return course


def update_course(
    db: Session,
    *,
    actor: User,
    course_id: str,
    changes: dict,
    ip_address: Optional[str] = None,
) -> models.Course:
    course = get_course(db, course_id)
    access.ensure_trainee_write(db, actor, course.trainee_profile_id)
    _validate(
        changes.get("start_date") or course.start_date,
        changes["end_date"] if "end_date" in changes else course.end_date,
        changes["hours"] if "hours" in changes else course.hours,
    )

    before = _snapshot(course)
    for field in _FIELDS:
        if field in changes:
            if field in ("title", "start_date") and changes[field] is None:
                continue
            setattr(course, field, changes[field])
    if "sub_goal_ids" in changes:
        course.sub_goals = subgoal_services.resolve_sub_goals(db, changes["sub_goal_ids"])
    db.add(course)
    db.commit()
    db.refresh(course)

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.UPDATE,
        entity_type="Course",
        entity_id=course.id,
        before=before,
        after=_snapshot(course),
        ip_address=ip_address,
    )
    return course


def delete_course(db: Session, *, actor: User, course_id: str, ip_address: Optional[str] = None) -> None:
    course = get_course(db, course_id)
    access.ensure_trainee_write(db, actor, course.trainee_profile_id)
    before = _snapshot(course)
    db.delete(course)
    db.commit()

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        action=AuditAction.DELETE,
        entity_type="Course",
        entity_id=course_id,
        before=before,
        ip_address=ip_address,
    )
