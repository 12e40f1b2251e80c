from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.audit import models as audit_models
from sagadb.apps.feedback import models, services
from sagadb.apps.policy.errors import Forbidden, NotFound, ValidationFailed
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.rotations import services as rotation_services

TODAY = date(2025, 6, 15)

RATINGS = {
    "overall_rating": 4,
    "educational_value": 5,
    "supervision_quality": 3,
    "work_environment": 4,
}


def _rotation(db_session, profile, *, unit="Medicinkliniken", start=date(2025, 1, 1), end=date(2025, 3, 31)):
    rotation = rotation_models.Rotation(
        trainee_profile_id=profile.id,
        unit=unit,
        start_date=start,
        end_date=end,
    )
    db_session.add(rotation)
    db_session.commit()
    return rotation


def _submit(db_session, profile, rotation, **overrides):
    owner = db_session.get(User, profile.user_id)
    data = dict(RATINGS, positives="Bra handledning")
    data.update(overrides)
    return services.submit_feedback(
        db_session, actor=owner, rotation_id=rotation.id, data=data, today=TODAY
    )


def test_submit_feedback_for_finished_rotation(db_session, make_trainee):
    profile = make_trainee()
    rotation = _rotation(db_session, profile)

    feedback = _submit(db_session, profile, rotation)

    assert feedback.trainee_profile_id == profile.id
    assert feedback.overall_rating == 4
    assert feedback.positives == "Bra handledning"
    assert feedback.anonymous is False

    entry = (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.entity_id == feedback.id)
        .one()
    )
    assert entry.action == audit_models.AuditAction.CREATE
    assert entry.entity_type == "RotationFeedback"
    assert entry.after["supervision_quality"] == 3


def test_rotation_ending_today_counts_as_finished(db_session, make_trainee):
    profile = make_trainee()
    rotation = _rotation(db_session, profile, end=TODAY)

    assert _submit(db_session, profile, rotation).rotation_id == rotation.id


def test_only_the_trainee_may_submit(db_session, make_trainee, make_user):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    rotation = _rotation(db_session, profile)

    with pytest.raises(Forbidden):
        services.submit_feedback(
            db_session, actor=supervisor, rotation_id=rotation.id, data=dict(RATINGS), today=TODAY
        )


def test_feedback_is_rejected_before_rotation_ends(db_session, make_trainee):
    profile = make_trainee()
    rotation = _rotation(db_session, profile, end=date(2025, 6, 16))

    with pytest.raises(ValidationFailed):
        _submit(db_session, profile, rotation)


def test_feedback_can_only_be_submitted_once(db_session, make_trainee):
    profile = make_trainee()
    rotation = _rotation(db_session, profile)
    _submit(db_session, profile, rotation)

    with pytest.raises(ValidationFailed) as excinfo:
        _submit(db_session, profile, rotation, overall_rating=1)
    assert "already" in excinfo.value.detail
    assert db_session.query(models.RotationFeedback).count() == 1


@pytest.mark.parametrize("field, value", [("overall_rating", 0), ("work_environment", 6)])
def test_ratings_outside_one_to_five_are_rejected(db_session, make_trainee, field, value):
    profile = make_trainee()
    rotation = _rotation(db_session, profile)

    with pytest.raises(ValidationFailed):
        _submit(db_session, profile, rotation, **{field: value})
    assert db_session.query(models.RotationFeedback).count() == 0


def test_unknown_rotation_is_not_found(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    with pytest.raises(NotFound):
        services.submit_feedback(db_session, actor=owner, rotation_id="missing", data=dict(RATINGS))


def test_anonymous_feedback_hides_name_from_study_director(db_session, make_clinic, make_trainee, make_user):
    clinic = make_clinic()
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic)
    profile = make_trainee(clinic=clinic, name="Sara Lind")
    rotation = _rotation(db_session, profile)
    _submit(db_session, profile, rotation, anonymous=True)

    as_director = services.get_rotation_feedback(db_session, director, rotation.id)
    assert as_director["trainee_name"] is None
    assert as_director["unit"] == "Medicinkliniken"

    owner = db_session.get(User, profile.user_id)
    as_owner = services.get_rotation_feedback(db_session, owner, rotation.id)
    assert as_owner["trainee_name"] == "Sara Lind"


def test_rotation_feedback_read_access(db_session, make_clinic, make_trainee, make_user):
    clinic = make_clinic()
    supervisor = make_user(AccountRole.SUPERVISOR, clinic=clinic)
    profile = make_trainee(clinic=clinic, supervisor=supervisor)
    rotation = _rotation(db_session, profile)

    with pytest.raises(NotFound):
        services.get_rotation_feedback(db_session, supervisor, rotation.id)

    _submit(db_session, profile, rotation)

    with pytest.raises(Forbidden):
        services.get_rotation_feedback(db_session, supervisor, rotation.id)

    foreign_director = make_user(AccountRole.STUDY_DIRECTOR, clinic=make_clinic("Karolinska"))
    with pytest.raises(Forbidden):
        services.get_rotation_feedback(db_session, foreign_director, rotation.id)


def test_unit_listing_filters_and_anonymises(db_session, make_clinic, make_trainee, make_user):
    clinic = make_clinic()
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic)
    first = make_trainee(clinic=clinic, name="Sara Lind")
    second = make_trainee(clinic=clinic, name="Erik Berg")
    _submit(db_session, first, _rotation(db_session, first, unit="Kirurgkliniken"))
    _submit(db_session, second, _rotation(db_session, second, unit="Kirurgkliniken"), anonymous=True)
    _submit(
        db_session,
        second,
        _rotation(db_session, second, unit="Medicinkliniken", start=date(2025, 4, 1), end=date(2025, 5, 31)),
    )

    other_clinic = make_clinic("Karolinska")
    outsider = make_trainee(clinic=other_clinic)
    _submit(db_session, outsider, _rotation(db_session, outsider, unit="Kirurgkliniken"))

    rows = services.list_unit_feedback(db_session, director, unit="Kirurgkliniken")

    assert sorted(row["trainee_name"] for row in rows) == ["Anonym", "Sara Lind"]
    assert {row["unit"] for row in rows} == {"Kirurgkliniken"}

    admin = make_user(AccountRole.ADMIN)
    assert len(services.list_unit_feedback(db_session, admin, unit="Kirurgkliniken")) == 3


def test_submitted_date_range_is_inclusive(db_session, make_trainee, make_user):
    admin = make_user(AccountRole.ADMIN)
    profile = make_trainee()
    feedback = _submit(db_session, profile, _rotation(db_session, profile))
    feedback.submitted_at = datetime(2025, 5, 20, 16, 30, tzinfo=timezone.utc)
    db_session.commit()

    within = services.list_unit_feedback(
        db_session, admin, date_from=date(2025, 5, 20), date_to=date(2025, 5, 20)
    )
    after = services.list_unit_feedback(db_session, admin, date_from=date(2025, 5, 21))

    assert [row["id"] for row in within] == [feedback.id]
    assert after == []


def test_statistics_average_per_unit(db_session, make_trainee, make_user):
    admin = make_user(AccountRole.ADMIN)
    for overall, environment in ((4, 3), (5, 4), (4, 4)):
        profile = make_trainee()
        _submit(
            db_session,
            profile,
            _rotation(db_session, profile, unit="Kirurgkliniken"),
            overall_rating=overall,
            work_environment=environment,
        )
    single = make_trainee()
    _submit(db_session, single, _rotation(db_session, single, unit="Ortopedkliniken"), overall_rating=2)

    stats = services.feedback_statistics(db_session, admin)

    assert stats["total_responses"] == 4
    assert [row["unit"] for row in stats["by_unit"]] == ["Kirurgkliniken", "Ortopedkliniken"]
    surgery = stats["by_unit"][0]
    assert surgery["response_count"] == 3
    assert surgery["average_overall"] == 4.3
    assert surgery["average_environment"] == 3.7
    assert surgery["average_educational"] == 5.0


def test_statistics_require_reviewer_role(db_session, make_user):
    with pytest.raises(Forbidden):
        services.feedback_statistics(db_session, make_user(AccountRole.SUPERVISOR))


def test_pending_lists_finished_rotations_without_feedback(db_session, make_trainee, make_user):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)
    done = _rotation(db_session, profile, end=date(2025, 3, 31))
    rated = _rotation(db_session, profile, unit="Kirurgkliniken", start=date(2024, 1, 1), end=date(2024, 6, 30))
    latest = _rotation(db_session, profile, unit="Akuten", start=date(2025, 4, 1), end=date(2025, 5, 31))
    _rotation(db_session, profile, unit="Ortopedkliniken", start=date(2025, 6, 1), end=date(2025, 9, 30))
    _submit(db_session, profile, rated)

    pending = services.pending_feedback(db_session, owner, today=TODAY)

    assert [rotation.id for rotation in pending] == [latest.id, done.id]
    assert services.pending_feedback(db_session, make_user(AccountRole.SUPERVISOR), today=TODAY) == []


def test_deleting_rotation_removes_its_feedback(db_session, make_trainee):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)
    rotation = _rotation(db_session, profile)
    _submit(db_session, profile, rotation)

    rotation_services.delete_rotation(db_session, actor=owner, rotation_id=rotation.id)

    assert db_session.query(models.RotationFeedback).count() == 0
