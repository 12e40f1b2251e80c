# backend/sagadb/apps/exports/trainee_pack.py

"""
Trainee record export.

`build_trainee_record` is the full record (data.json). `build_summary` is
the aggregate used for the specialist application (sammanstallning.json).
Voided supervision meetings appear in neither.
"""

from __future__ import annotations

import enum
import io
import json
import logging
import os
import zipfile
from collections import Counter
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.certificates import models as certificate_models
from sagadb.apps.certificates import storage
from sagadb.apps.courses import models as course_models
from sagadb.apps.policy.errors import ValidationFailed
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.subgoals import models as subgoal_models
from sagadb.apps.subgoals import services as subgoal_services
from sagadb.apps.supervision import services as supervision_services
from sagadb.apps.trainees import models as trainee_models
from sagadb.utils.dates import utcnow

logger = logging.getLogger(__name__)

EXPORT_MAX_BYTES = int(os.getenv("EXPORT_MAX_BYTES", str(100 * 1024 * 1024)))
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _to_json_bytes(payload: Any) -> bytes:
    return json.dumps(
        payload,
        default=_serialize_value,
        sort_keys=True,
        indent=2,
        ensure_ascii=False,
    ).encode("utf-8")


def _model_to_dict(obj: Any, *, exclude: tuple = ()) -> dict:
    mapper = inspect(obj).mapper
    data: dict[str, Any] = {}
    for column in mapper.column_attrs:
        key = column.key
        if key in exclude:
            continue
        data[key] = _serialize_value(getattr(obj, key))
    return data


def _with_sub_goals(obj: Any, *, exclude: tuple = ()) -> dict:
    data = _model_to_dict(obj, exclude=exclude)
    data["sub_goals"] = sorted(sg.code for sg in obj.sub_goals)
    return data


def _person(user: Any) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def _by_profile(db: Session, model: Any, profile_id: str, order_by: Any) -> list:
    return db.query(model).filter(model.trainee_profile_id == profile_id).order_by(order_by).all()


def build_trainee_record(db: Session, profile: trainee_models.TraineeProfile) -> dict:
    rotations = _by_profile(
        db, rotation_models.Rotation, profile.id, rotation_models.Rotation.start_date.asc()
    )
    courses = _by_profile(db, course_models.Course, profile.id, course_models.Course.start_date.asc())
    assessments = _by_profile(
        db, assessment_models.Assessment, profile.id, assessment_models.Assessment.date.asc()
    )
    meetings = supervision_services.list_meetings(db, profile.id, include_voided=False)
    certificates = _by_profile(
        db,
        certificate_models.Certificate,
        profile.id,
        certificate_models.Certificate.created_at.asc(),
    )
    progress = subgoal_services.list_progress(db, profile.id)

    profile_data = _model_to_dict(profile)
    profile_data["user"] = _person(profile.user)
    profile_data["supervisor"] = _person(profile.supervisor)
    profile_data["clinic"] = {"id": profile.clinic.id, "name": profile.clinic.name} if profile.clinic else None

    return {
        "profile": profile_data,
        "rotations": [_with_sub_goals(r) for r in rotations],
        "courses": [_with_sub_goals(c) for c in courses],
        "assessments": [_with_sub_goals(a) for a in assessments],
        "supervision_meetings": [
            _model_to_dict(m, exclude=("voided_at", "voided_by_id", "void_reason"))
            for m in sorted(meetings, key=lambda m: m.date)
        ],
        "certificates": [_with_sub_goals(c, exclude=("file_path",)) for c in certificates],
        "sub_goal_progress": [
            {
                **_model_to_dict(p),
                "signed_by": _person(p.signed_by),
                "sub_goal": {
                    "code": p.sub_goal.code,
                    "title": p.sub_goal.title,
                    "category": _serialize_value(p.sub_goal.category),
                },
            }
            for p in progress
        ],
    }


def build_summary(
    db: Session,
    profile: trainee_models.TraineeProfile,
    record: Optional[dict] = None,
) -> dict:
    if record is None:
        record = build_trainee_record(db, profile)
    rotations = record["rotations"]
    assessments = record["assessments"]
    meetings = record["supervision_meetings"]

    progress = subgoal_services.progress_summary(db, profile.id)
    completed = [
        p for p in record["sub_goal_progress"] if p["status"] == subgoal_models.SubGoalStatus.UPPNADD.value
    ]

    return {
        "generated_at": utcnow().isoformat(),
        "trainee": {
            "name": profile.user.name,
            "email": profile.user.email,
            "track_type": _serialize_value(profile.track_type),
            "specialty": profile.specialty,
            "clinic": profile.clinic.name if profile.clinic else None,
            "supervisor": profile.supervisor.name if profile.supervisor else None,
            "start_date": _serialize_value(profile.start_date),
            "planned_end_date": _serialize_value(profile.planned_end_date),
        },
        "progress": {
            **progress,
            "by_category": [
                {**row, "category": _serialize_value(row["category"])} for row in progress["by_category"]
            ],
        },
        "rotations": {
            "completed": sum(1 for r in rotations if not r["planned"]),
            "planned": sum(1 for r in rotations if r["planned"]),
        },
        "courses": {
            "count": len(record["courses"]),
            "hours": sum(c["hours"] or 0 for c in record["courses"]),
        },
        "assessments": {
            "count": len(assessments),
            "signed": sum(1 for a in assessments if a["signed_at"]),
            "by_type": dict(Counter(a["type"] for a in assessments)),
        },
        "supervision_meetings": {
            "count": len(meetings),
            "signed": sum(1 for m in meetings if m["signed_at"]),
            "last_date": meetings[-1]["date"] if meetings else None,
        },
        "certificates": {"count": len(record["certificates"])},
        "completed_sub_goals": [
            {
                "code": p["sub_goal"]["code"],
                "title": p["sub_goal"]["title"],
                "signed_at": p["signed_at"],
                "signed_by": p["signed_by"]["name"] if p["signed_by"] else None,
            }
            for p in completed
        ],
    }


def _write_zip(entries: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries:
            info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, data)
    buffer.seek(0)
    return buffer.read()


def _add_entry(entries: list[tuple[str, bytes]], name: str, payload: Any) -> int:
    data = _to_json_bytes(payload)
    entries.append((name, data))
    return len(data)


def _load_attachment(
    entries: list[tuple[str, bytes]],
    *,
    name: str,
    path: Path,
    current_size: int,
    max_size: int,
    omitted: list[dict[str, Any]],
) -> int:
    if not path.exists():
        omitted.append({"path": name, "reason": "missing"})
        return 0
    size = path.stat().st_size
    if max_size and current_size + size > max_size:
        omitted.append({"path": name, "reason": "exceeds_limit", "size_bytes": size})
        return 0
    data = path.read_bytes()
    entries.append((name, data))
    return len(data)


def _attachment_name(certificate: certificate_models.Certificate, used: set) -> str:
    base = Path(certificate.file_name).name or f"{certificate.id}"
    name = f"intyg/{base}"
    if name in used:
        name = f"intyg/{certificate.id}_{base}"
    used.add(name)
    return name


def build_package(db: Session, profile: trainee_models.TraineeProfile) -> bytes:
    """ZIP with sammanstallning.json, data.json and the stored certificate files."""
    entries: list[tuple[str, bytes]] = []
    omitted: list[dict[str, Any]] = []
    current_size = 0

    record = build_trainee_record(db, profile)
    current_size += _add_entry(entries, "sammanstallning.json", build_summary(db, profile, record))
    current_size += _add_entry(entries, "data.json", record)

    certificates = _by_profile(
        db,
        certificate_models.Certificate,
        profile.id,
        certificate_models.Certificate.created_at.asc(),
    )
    used: set = set()
    for certificate in certificates:
        name = _attachment_name(certificate, used)
        try:
            path = storage.absolute_path(certificate.file_path)
        except ValidationFailed:
            omitted.append({"path": name, "reason": "invalid_path"})
            continue
        current_size += _load_attachment(
            entries,
            name=name,
            path=path,
            current_size=current_size,
            max_size=EXPORT_MAX_BYTES,
            omitted=omitted,
        )

    if omitted:
        logger.warning(
            "Export package omitted files",
            extra={"trainee_profile_id": profile.id, "omitted": len(omitted)},
        )
        current_size += _add_entry(
            entries,
            "manifest.json",
            {
                "limit_bytes": EXPORT_MAX_BYTES,
                "total_bytes": current_size,
                "omitted": omitted,
            },
        )
    return _write_zip(entries)
