from __future__ import annotations

from datetime import date

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.policy.errors import Conflict, Forbidden, ValidationFailed
from sagadb.apps.subgoals import models as subgoal_models
from sagadb.apps.trainees import models, schemas, services


def _payload(**overrides):
    data = {
        "email": "Ny.Lakare@Example.com",
        "password": "secret123",
        "name": "Ny Läkare",
        "track_type": models.TrackType.ST,
        "start_date": date(2025, 1, 1),
        "planned_end_date": date(2030, 1, 1),
    }
    data.update(overrides)
    return schemas.TraineeCreate(**data)


def _seed_spec(db_session):
    spec = subgoal_models.GoalSpec(name="ST", track_type=models.TrackType.ST, version="2021")
    spec.sub_goals = [
        subgoal_models.SubGoal(code="a1", title="Teamarbete", category=subgoal_models.SubGoalCategory.LEDARSKAP),
        subgoal_models.SubGoal(code="a2", title="Handledning", category=subgoal_models.SubGoalCategory.LEDARSKAP),
    ]
    db_session.add(spec)
    db_session.commit()


def test_create_trainee_creates_user_profile_and_progress(db_session, make_clinic, make_user):
    _seed_spec(db_session)
    clinic = make_clinic()
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic)
    supervisor = make_user(AccountRole.SUPERVISOR, clinic=clinic)

    profile = services.create_trainee(
        db_session,
        actor=director,
        payload=_payload(supervisor_id=supervisor.id),
    )

    user = db_session.get(User, profile.user_id)
    assert user.email == "ny.lakare@example.com"
    assert user.role == AccountRole.TRAINEE
    assert profile.clinic_id == clinic.id
    progress = (
        db_session.query(subgoal_models.TraineeSubGoalProgress)
        .filter(subgoal_models.TraineeSubGoalProgress.trainee_profile_id == profile.id)
        .count()
    )
    assert progress == 2


def test_duplicate_email_conflicts_and_leaves_nothing_behind(db_session, make_user):
    admin = make_user(AccountRole.ADMIN)
    services.create_trainee(db_session, actor=admin, payload=_payload())

    with pytest.raises(Conflict):
        services.create_trainee(db_session, actor=admin, payload=_payload(name="Annan"))
    assert db_session.query(models.TraineeProfile).count() == 1


def test_invalid_dates_are_rejected(db_session, make_user):
    admin = make_user(AccountRole.ADMIN)
    with pytest.raises(ValidationFailed):
        services.create_trainee(
            db_session,
            actor=admin,
            payload=_payload(start_date=date(2030, 1, 1), planned_end_date=date(2030, 1, 1)),
        )
    assert db_session.query(User).filter(User.role == AccountRole.TRAINEE).count() == 0


def test_supervisor_must_have_supervisor_role(db_session, make_user):
    admin = make_user(AccountRole.ADMIN)
    trainee = make_user(AccountRole.TRAINEE)
    with pytest.raises(ValidationFailed):
        services.create_trainee(db_session, actor=admin, payload=_payload(supervisor_id=trainee.id))


def test_director_limited_to_own_clinic(db_session, make_clinic, make_user):
    own = make_clinic()
    other = make_clinic("Sahlgrenska")
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=own)

    with pytest.raises(Forbidden):
        services.create_trainee(db_session, actor=director, payload=_payload(clinic_id=other.id))


def test_visible_profiles_follow_access_relations(db_session, make_clinic, make_user, make_trainee):
    clinic = make_clinic()
    supervisor = make_user(AccountRole.SUPERVISOR, clinic=clinic)
    mine = make_trainee(clinic=clinic, supervisor=supervisor)
    other = make_trainee(clinic=make_clinic("Annan"))

    assert [p.id for p in services.visible_profiles(db_session, supervisor)] == [mine.id]
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic)
    assert [p.id for p in services.visible_profiles(db_session, director)] == [mine.id]
    admin = make_user(AccountRole.ADMIN)
    assert {p.id for p in services.visible_profiles(db_session, admin)} == {mine.id, other.id}
    owner = db_session.get(User, other.user_id)
    assert [p.id for p in services.visible_profiles(db_session, owner)] == [other.id]
