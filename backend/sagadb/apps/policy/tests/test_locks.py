from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.assessments import services as assessment_services
from sagadb.apps.policy import locks
from sagadb.apps.policy.errors import AlreadySigned, AlreadyVoided, Forbidden, NotSigned, RecordLocked, ValidationFailed
from sagadb.apps.supervision import models as supervision_models

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _assessment(db_session, profile, assessor=None):
    assessment = assessment_models.Assessment(
        trainee_profile_id=profile.id,
        type=assessment_models.AssessmentType.DOPS,
        date=date(2025, 2, 1),
        assessor_id=assessor.id if assessor else None,
        rating=3,
        narrative_feedback="Bra handlag",
    )
    db_session.add(assessment)
    db_session.commit()
    return assessment


def _meeting(db_session, profile):
    meeting = supervision_models.SupervisionMeeting(
        trainee_profile_id=profile.id,
        date=date(2025, 2, 10),
        notes="Genomgång av delmål",
    )
    db_session.add(meeting)
    db_session.commit()
    return meeting


def test_state_machine_for_meeting(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    meeting = _meeting(db_session, make_trainee(supervisor=supervisor))

    assert meeting.state == locks.RecordState.UNSIGNED
    assert not meeting.is_locked

    locks.apply_signature(meeting, supervisor, NOW)
    assert meeting.state == locks.RecordState.SIGNED
    assert meeting.supervisor_id == supervisor.id

    locks.apply_void(meeting, supervisor, "  Fel datum  ", NOW)
    assert meeting.state == locks.RecordState.VOIDED
    assert meeting.signed_at == NOW
    assert meeting.void_reason == "Fel datum"
    assert meeting.voided_by_id == supervisor.id


def test_signing_twice_raises_already_signed(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    assessment = _assessment(db_session, make_trainee(supervisor=supervisor))

    locks.apply_signature(assessment, supervisor, NOW)
    with pytest.raises(AlreadySigned):
        locks.apply_signature(assessment, supervisor, NOW)
    assert assessment.signed_at == NOW


def test_trainee_cannot_sign(make_user):
    with pytest.raises(Forbidden):
        locks.ensure_signer_role(make_user(AccountRole.TRAINEE))


def test_void_rules(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    meeting = _meeting(db_session, profile)

    with pytest.raises(NotSigned):
        locks.apply_void(meeting, supervisor, "reason", NOW)

    locks.apply_signature(meeting, supervisor, NOW)
    with pytest.raises(ValidationFailed):
        locks.apply_void(meeting, supervisor, "   ", NOW)
    with pytest.raises(Forbidden):
        locks.apply_void(meeting, db_session.get(type(supervisor), profile.user_id), "reason", NOW)

    locks.apply_void(meeting, supervisor, "reason", NOW)
    with pytest.raises(AlreadyVoided):
        locks.apply_void(meeting, supervisor, "again", NOW)

    assessment = _assessment(db_session, profile)
    locks.apply_signature(assessment, supervisor, NOW)
    with pytest.raises(ValidationFailed):
        locks.apply_void(assessment, supervisor, "reason", NOW)


def test_signed_assessment_rejects_edit_and_delete_for_every_role(db_session, make_clinic, make_user, make_trainee):
    clinic = make_clinic()
    supervisor = make_user(AccountRole.SUPERVISOR, clinic=clinic)
    profile = make_trainee(clinic=clinic, supervisor=supervisor)
    assessment = _assessment(db_session, profile, assessor=supervisor)
    assessment_services.sign_assessment(db_session, actor=supervisor, assessment_id=assessment.id, now=NOW)

    owner = db_session.get(type(supervisor), profile.user_id)
    actors = [
        owner,
        supervisor,
        make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic),
        make_user(AccountRole.ADMIN),
    ]
    for actor in actors:
        with pytest.raises(RecordLocked):
            assessment_services.update_assessment(
                db_session,
                actor=actor,
                assessment_id=assessment.id,
                changes={"rating": 5, "narrative_feedback": "ändrad"},
            )
        with pytest.raises(RecordLocked):
            assessment_services.delete_assessment(db_session, actor=actor, assessment_id=assessment.id)

    db_session.expire_all()
    stored = db_session.get(assessment_models.Assessment, assessment.id)
    assert stored is not None
    assert stored.rating == 3
    assert stored.narrative_feedback == "Bra handlag"


def test_lock_check_precedes_access_check(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    assessment = _assessment(db_session, make_trainee(supervisor=supervisor))
    assessment_services.sign_assessment(db_session, actor=supervisor, assessment_id=assessment.id, now=NOW)

    stranger = make_user(AccountRole.TRAINEE)
    with pytest.raises(RecordLocked):
        assessment_services.update_assessment(
            db_session, actor=stranger, assessment_id=assessment.id, changes={"rating": 1}
        )
