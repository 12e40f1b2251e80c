from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit import models as audit_models
from sagadb.apps.policy.errors import NotSigned, RecordLocked
from sagadb.apps.policy.locks import RecordState
from sagadb.apps.supervision import services

NOW = datetime(2025, 5, 1, 8, 0, tzinfo=timezone.utc)


def _create(db_session, actor, profile, when):
    return services.create_meeting(
        db_session,
        actor=actor,
        data={"trainee_profile_id": profile.id, "date": when, "notes": "Uppföljning"},
    )


def test_default_supervisor(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    owner = db_session.get(User, profile.user_id)

    by_trainee = _create(db_session, owner, profile, date(2025, 1, 1))
    assert by_trainee.supervisor_id == supervisor.id

    director = make_user(AccountRole.ADMIN)
    by_admin = _create(db_session, director, profile, date(2025, 1, 2))
    assert by_admin.supervisor_id == supervisor.id


def test_sign_then_void_keeps_signature_and_leaves_aggregates(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    older = _create(db_session, supervisor, profile, date(2025, 1, 15))
    newer = _create(db_session, supervisor, profile, date(2025, 3, 15))

    assert services.last_active_meeting(db_session, profile.id).id == newer.id

    services.sign_meeting(db_session, actor=supervisor, meeting_id=newer.id, now=NOW)
    voided = services.void_meeting(
        db_session,
        actor=supervisor,
        meeting_id=newer.id,
        reason="Registrerat på fel ST-läkare",
        now=NOW,
    )

    assert voided.state == RecordState.VOIDED
    assert voided.signed_at is not None
    assert voided.void_reason == "Registrerat på fel ST-läkare"
    assert services.last_active_meeting(db_session, profile.id).id == older.id
    assert [m.id for m in services.list_meetings(db_session, profile.id, include_voided=False)] == [older.id]
    assert {m.id for m in services.list_meetings(db_session, profile.id)} == {older.id, newer.id}

    void_events = (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.action == audit_models.AuditAction.VOID)
        .all()
    )
    assert len(void_events) == 1
    assert void_events[0].entity_id == newer.id


def test_voided_meeting_stays_locked(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    meeting = _create(db_session, supervisor, profile, date(2025, 2, 1))
    services.sign_meeting(db_session, actor=supervisor, meeting_id=meeting.id, now=NOW)
    services.void_meeting(db_session, actor=supervisor, meeting_id=meeting.id, reason="Dubblett", now=NOW)

    with pytest.raises(RecordLocked):
        services.update_meeting(db_session, actor=supervisor, meeting_id=meeting.id, changes={"notes": "x"})
    with pytest.raises(RecordLocked):
        services.delete_meeting(db_session, actor=supervisor, meeting_id=meeting.id)


def test_unsigned_meeting_cannot_be_voided(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    meeting = _create(db_session, supervisor, profile, date(2025, 2, 1))

    with pytest.raises(NotSigned):
        services.void_meeting(db_session, actor=supervisor, meeting_id=meeting.id, reason="x")


def test_no_meetings_means_no_last_meeting(db_session, make_trainee):
    assert services.last_active_meeting(db_session, make_trainee().id) is None
