from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.assessments import models, services
from sagadb.apps.audit import models as audit_models
from sagadb.apps.notifications import models as notification_models
from sagadb.apps.policy.errors import AlreadySigned, Forbidden, ValidationFailed

NOW = datetime(2025, 4, 2, 9, 30, tzinfo=timezone.utc)


def _create(db_session, actor, profile, **overrides):
    data = {
        "trainee_profile_id": profile.id,
        "type": models.AssessmentType.MINI_CEX,
        "date": date(2025, 3, 28),
        "context": "Akutmottagningen",
        "rating": 4,
    }
    data.update(overrides)
    return services.create_assessment(db_session, actor=actor, data=data)


def test_supervisor_becomes_default_assessor(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)

    assessment = _create(db_session, supervisor, profile)

    assert assessment.assessor_id == supervisor.id
    assert assessment.signed_at is None


def test_trainee_created_assessment_has_no_default_assessor(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    assessment = _create(db_session, owner, profile)

    assert assessment.assessor_id is None


def test_unknown_assessor_is_rejected(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    with pytest.raises(ValidationFailed):
        _create(db_session, owner, profile, assessor_id="nobody")


def test_stranger_cannot_create(db_session, make_user, make_trainee):
    profile = make_trainee()
    with pytest.raises(Forbidden):
        _create(db_session, make_user(AccountRole.TRAINEE), profile)


def test_sign_records_audit_and_notifies_trainee(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR, name="Erik Johansson")
    profile = make_trainee(supervisor=supervisor)
    assessment = _create(db_session, supervisor, profile)

    signed = services.sign_assessment(db_session, actor=supervisor, assessment_id=assessment.id, now=NOW)

    assert signed.signed_at is not None
    sign_events = (
        db_session.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == assessment.id,
            audit_models.AuditEvent.action == audit_models.AuditAction.SIGN,
        )
        .all()
    )
    assert len(sign_events) == 1
    assert sign_events[0].after["signed_by"] == "Erik Johansson"

    notification = (
        db_session.query(notification_models.Notification)
        .filter(notification_models.Notification.user_id == profile.user_id)
        .one()
    )
    assert notification.type == notification_models.NotificationType.ASSESSMENT_SIGNED
    assert notification.message == "Erik Johansson har signerat Mini-CEX-bedömning"

    with pytest.raises(AlreadySigned):
        services.sign_assessment(db_session, actor=supervisor, assessment_id=assessment.id, now=NOW)


def test_trainee_cannot_sign_own_assessment(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)
    assessment = _create(db_session, owner, profile)

    with pytest.raises(Forbidden):
        services.sign_assessment(db_session, actor=owner, assessment_id=assessment.id)


def test_supervisor_of_another_trainee_cannot_sign(db_session, make_user, make_trainee):
    profile = make_trainee(supervisor=make_user(AccountRole.SUPERVISOR))
    owner = db_session.get(User, profile.user_id)
    assessment = _create(db_session, owner, profile)

    with pytest.raises(Forbidden):
        services.sign_assessment(db_session, actor=make_user(AccountRole.SUPERVISOR), assessment_id=assessment.id)


def test_list_filters_and_pending_signatures(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    first = _create(db_session, supervisor, profile, date=date(2025, 1, 10))
    second = _create(db_session, supervisor, profile, date=date(2025, 2, 10), type=models.AssessmentType.DOPS)
    services.sign_assessment(db_session, actor=supervisor, assessment_id=first.id, now=NOW)

    assert [a.id for a in services.list_assessments(db_session, profile.id)] == [second.id, first.id]
    assert [a.id for a in services.list_assessments(db_session, profile.id, signed=True)] == [first.id]
    assert [a.id for a in services.list_assessments(db_session, profile.id, type=models.AssessmentType.DOPS)] == [
        second.id
    ]
    assert [a.id for a in services.pending_signatures(db_session, supervisor)] == [second.id]


def test_update_and_delete_unsigned(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)
    assessment = _create(db_session, owner, profile)

    updated = services.update_assessment(
        db_session,
        actor=owner,
        assessment_id=assessment.id,
        changes={"rating": 5, "type": None},
    )
    assert updated.rating == 5
    assert updated.type == models.AssessmentType.MINI_CEX

    services.delete_assessment(db_session, actor=owner, assessment_id=assessment.id)
    assert db_session.get(models.Assessment, assessment.id) is None
