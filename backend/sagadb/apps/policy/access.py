"""
Trainee access policy.

Every trainee-scoped operation asks one question: how does the requester
relate to the trainee whose record is touched? The answer is a closed
`AccessRelation`; anything other than OTHER grants access.

Custody data (owner, clinic, supervisor) is re-read on every call because
supervisors and clinics are reassigned while users stay logged in.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.trainees import models as trainee_models

from .errors import Forbidden


class AccessRelation(str, enum.Enum):
    ADMIN = "ADMIN"
    SELF = "SELF"
    ASSIGNED_SUPERVISOR = "ASSIGNED_SUPERVISOR"
    SAME_CLINIC_DIRECTOR = "SAME_CLINIC_DIRECTOR"
    OTHER = "OTHER"


@dataclass(frozen=True)
class Requester:
    id: str
    role: AccountRole
    clinic_id: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Requester":
        return cls(id=user.id, role=AccountRole(user.role), clinic_id=user.clinic_id)


@dataclass(frozen=True)
class TraineeCustody:
    profile_id: str
    owner_user_id: str
    clinic_id: Optional[str]
    supervisor_id: Optional[str]

    @classmethod
    def from_profile(cls, profile: trainee_models.TraineeProfile) -> "TraineeCustody":
        return cls(
            profile_id=profile.id,
            owner_user_id=profile.user_id,
            clinic_id=profile.clinic_id,
            supervisor_id=profile.supervisor_id,
        )


def classify_access(requester: Requester, custody: Optional[TraineeCustody]) -> AccessRelation:
    if custody is None:
        return AccessRelation.OTHER
    if requester.role == AccountRole.ADMIN:
        return AccessRelation.ADMIN
    if requester.id == custody.owner_user_id:
        return AccessRelation.SELF
    if (
        requester.role == AccountRole.SUPERVISOR
        and custody.supervisor_id is not None
        and requester.id == custody.supervisor_id
    ):
        return AccessRelation.ASSIGNED_SUPERVISOR
    if (
        requester.role == AccountRole.STUDY_DIRECTOR
        and custody.clinic_id is not None
        and requester.clinic_id == custody.clinic_id
    ):
        return AccessRelation.SAME_CLINIC_DIRECTOR
    return AccessRelation.OTHER


def load_custody(db: Session, trainee_profile_id: Optional[str]) -> Optional[TraineeCustody]:
    if not trainee_profile_id:
        return None
    profile = (
        db.query(trainee_models.TraineeProfile)
        .filter(trainee_models.TraineeProfile.id == trainee_profile_id)
        .first()
    )
    if profile is None:
        return None
    return TraineeCustody.from_profile(profile)


def _as_requester(requester: Requester | User) -> Requester:
    if isinstance(requester, Requester):
        return requester
    return Requester.from_user(requester)


def can_access_trainee(db: Session, requester: Requester | User, trainee_profile_id: Optional[str]) -> bool:
    relation = classify_access(_as_requester(requester), load_custody(db, trainee_profile_id))
    return relation != AccessRelation.OTHER


# Write eligibility is the read rule. Signed records are protected by the
# record lock, not by a narrower write rule.
can_write_trainee = can_access_trainee


def ensure_trainee_access(db: Session, requester: Requester | User, trainee_profile_id: Optional[str]) -> None:
    if not can_access_trainee(db, requester, trainee_profile_id):
        raise Forbidden()


def ensure_trainee_write(db: Session, requester: Requester | User, trainee_profile_id: Optional[str]) -> None:
    if not can_write_trainee(db, requester, trainee_profile_id):
        raise Forbidden()
