from __future__ import annotations

import logging
from datetime import date

import pytest

from sagadb.apps.audit import models as audit_models
from sagadb.apps.audit import services as audit_services


def test_log_event_writes_record(db_session, make_user):
    actor = make_user()

    result = audit_services.log_event(
        db_session,
        actor_user_id=actor.id,
        action=audit_models.AuditAction.UPDATE,
        entity_type="Rotation",
        entity_id="rot-1",
        before={"unit": "Akuten", "start_date": date(2025, 1, 1)},
        after={"unit": "Medicin", "planned": audit_models.AuditAction.UPDATE},
        ip_address="10.0.0.1",
    )

    assert result.written
    event = db_session.query(audit_models.AuditEvent).one()
    assert event.before == {"unit": "Akuten", "start_date": "2025-01-01"}
    assert event.after["planned"] == "UPDATE"
    assert event.ip_address == "10.0.0.1"


def test_log_event_failure_is_reported_not_raised(db_session, monkeypatch, caplog):
    def _explode(*_args, **_kwargs):
        raise RuntimeError("audit table missing")

    monkeypatch.setattr(audit_services, "create_audit_event", _explode)

    result = audit_services.log_event(
        db_session,
        actor_user_id=None,
        action=audit_models.AuditAction.CREATE,
        entity_type="Course",
        entity_id="c-1",
    )

    assert not result
    assert result.written is False
    assert result.error == "audit table missing"

    record = next(r for r in caplog.records if r.getMessage() == "Failed to log audit event")
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None
    assert record.entity_type == "Course"


def test_critical_audit_failure_raises(db_session, monkeypatch):
    def _explode(*_args, **_kwargs):
        raise RuntimeError("audit table missing")

    monkeypatch.setattr(audit_services, "create_audit_event", _explode)

    with pytest.raises(RuntimeError):
        audit_services.log_event(
            db_session,
            actor_user_id=None,
            action=audit_models.AuditAction.SIGN,
            entity_type="Assessment",
            entity_id="a-1",
            critical=True,
        )


def test_list_filters_by_clinic_of_actor(db_session, make_clinic, make_user):
    clinic = make_clinic()
    inside = make_user(clinic=clinic)
    outside = make_user()
    for actor in (inside, outside):
        audit_services.log_event(
            db_session,
            actor_user_id=actor.id,
            action=audit_models.AuditAction.CREATE,
            entity_type="Course",
            entity_id=actor.id,
        )

    events = audit_services.list_audit_events(db_session, clinic_id=clinic.id)
    assert [e.actor_user_id for e in events] == [inside.id]
    assert len(audit_services.list_audit_events(db_session, entity_type="Course")) == 2
