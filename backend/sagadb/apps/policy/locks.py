"""
Record lock for signable records.

A record is UNSIGNED until an eligible reviewer signs it. From then on it
is frozen: edits and deletes are rejected whatever the requester's role.
Supervision meetings can additionally be voided, which keeps the signature
and takes the record out of aggregates.

    UNSIGNED --sign--> SIGNED --void(reason)--> VOIDED
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.utils.dates import utcnow

from .errors import AlreadySigned, AlreadyVoided, Forbidden, NotSigned, RecordLocked, ValidationFailed


SIGNER_ROLES = frozenset(
    {
        AccountRole.SUPERVISOR,
        AccountRole.STUDY_DIRECTOR,
        AccountRole.ADMIN,
    }
)


class RecordState(str, enum.Enum):
    UNSIGNED = "UNSIGNED"
    SIGNED = "SIGNED"
    VOIDED = "VOIDED"


def record_state(record: Any) -> RecordState:
    if getattr(record, "voided_at", None) is not None:
        return RecordState.VOIDED
    if record.signed_at is not None:
        return RecordState.SIGNED
    return RecordState.UNSIGNED


class SignableMixin:
    """
    Mixed into models carrying `signed_at`.

    `__signer_field__` names the column that records who signed.
    `__voidable__` marks models that expose the void transition.
    """

    __signer_field__: str = "signed_by_id"
    __voidable__: bool = False

    @property
    def state(self) -> RecordState:
        return record_state(self)

    @property
    def is_locked(self) -> bool:
        return self.state != RecordState.UNSIGNED


def ensure_mutable(record: Any) -> None:
    if record_state(record) != RecordState.UNSIGNED:
        raise RecordLocked()


def ensure_signer_role(user: User) -> None:
    if user.role not in SIGNER_ROLES:
        raise Forbidden("Only supervisors and study directors can sign")


def ensure_signable(record: Any) -> None:
    if record_state(record) != RecordState.UNSIGNED:
        raise AlreadySigned()


def apply_signature(record: Any, signer: User, now: Optional[datetime] = None) -> None:
    ensure_signable(record)
    record.signed_at = now or utcnow()
    setattr(record, getattr(record, "__signer_field__", "signed_by_id"), signer.id)


def apply_void(record: Any, actor: User, reason: Optional[str], now: Optional[datetime] = None) -> None:
    if not getattr(record, "__voidable__", False):
        raise ValidationFailed("This record type cannot be voided")
    ensure_signer_role(actor)
    state = record_state(record)
    if state == RecordState.UNSIGNED:
        raise NotSigned()
    if state == RecordState.VOIDED:
        raise AlreadyVoided()
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationFailed("A reason is required to void a record")
    record.voided_at = now or utcnow()
    record.voided_by_id = actor.id
    record.void_reason = cleaned
