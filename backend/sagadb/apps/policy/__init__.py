from .access import (
    AccessRelation,
    Requester,
    TraineeCustody,
    can_access_trainee,
    can_write_trainee,
    classify_access,
    ensure_trainee_access,
    ensure_trainee_write,
)
from .errors import PolicyError, as_http
from .locks import RecordState, SignableMixin, record_state

__all__ = [
    "AccessRelation",
    "Requester",
    "TraineeCustody",
    "can_access_trainee",
    "can_write_trainee",
    "classify_access",
    "ensure_trainee_access",
    "ensure_trainee_write",
    "PolicyError",
    "as_http",
    "RecordState",
    "SignableMixin",
    "record_state",
]
