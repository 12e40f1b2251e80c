from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.policy.errors import RecordLocked
from sagadb.apps.subgoals import models, services
from sagadb.apps.trainees.models import TrackType
from sagadb.utils.dates import days_between


@pytest.mark.parametrize(
    "completed, total, expected",
    [(5, 10, 50), (0, 0, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13)],
)
def test_calculate_progress_percentage(completed, total, expected):
    assert services.calculate_progress_percentage(completed, total) == expected


def test_days_between():
    assert days_between(date(2025, 1, 1), date(2025, 1, 31)) == 30
    assert days_between(date(2025, 1, 31), date(2025, 1, 1)) == 30
    assert days_between(
        datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 2, 12, 0, tzinfo=timezone.utc),
    ) == 2
    assert days_between(
        datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 2, 11, 59, tzinfo=timezone.utc),
    ) == 1


def _goal_spec(db_session, track_type=TrackType.ST):
    spec = models.GoalSpec(name="ST Allmänmedicin", track_type=track_type, version="2021")
    spec.sub_goals = [
        models.SubGoal(code="a1", title="Teamarbete", category=models.SubGoalCategory.LEDARSKAP, sort_order=1),
        models.SubGoal(code="b1", title="Konsultation", category=models.SubGoalCategory.KOMMUNIKATION, sort_order=2),
        models.SubGoal(code="c1", title="Akuta tillstånd", category=models.SubGoalCategory.MEDICINSK_KOMPETENS, sort_order=3),
    ]
    db_session.add(spec)
    db_session.commit()
    return spec


def test_initialize_progress_is_idempotent(db_session, make_trainee):
    _goal_spec(db_session)
    profile = make_trainee()

    assert services.initialize_progress(db_session, profile) == 3
    assert services.initialize_progress(db_session, profile) == 0
    db_session.commit()

    rows = services.list_progress(db_session, profile.id)
    assert len(rows) == 3
    assert {row.status for row in rows} == {models.SubGoalStatus.EJ_PABORJAD}


def test_initialize_without_spec_creates_nothing(db_session, make_trainee):
    _goal_spec(db_session, track_type=TrackType.BT)
    assert services.initialize_progress(db_session, make_trainee(track_type=TrackType.ST)) == 0


def test_sign_marks_achieved_and_locks(db_session, make_user, make_trainee):
    _goal_spec(db_session)
    supervisor = make_user(AccountRole.SUPERVISOR, name="Anna Svensson")
    profile = make_trainee(supervisor=supervisor)
    services.initialize_progress(db_session, profile)
    db_session.commit()
    progress = services.list_progress(db_session, profile.id)[0]

    signed = services.sign_progress(db_session, actor=supervisor, progress_id=progress.id)
    assert signed.status == models.SubGoalStatus.UPPNADD
    assert signed.signed_by_id == supervisor.id

    owner = db_session.get(User, profile.user_id)
    with pytest.raises(RecordLocked):
        services.update_progress(
            db_session,
            actor=owner,
            progress_id=progress.id,
            changes={"status": models.SubGoalStatus.PAGAENDE},
        )


def test_progress_summary(db_session, make_trainee):
    _goal_spec(db_session)
    profile = make_trainee()
    services.initialize_progress(db_session, profile)
    db_session.commit()
    owner = db_session.get(User, profile.user_id)
    rows = services.list_progress(db_session, profile.id)
    services.update_progress(
        db_session, actor=owner, progress_id=rows[0].id, changes={"status": models.SubGoalStatus.UPPNADD}
    )
    services.update_progress(
        db_session, actor=owner, progress_id=rows[1].id, changes={"status": models.SubGoalStatus.UPPNADD}
    )
    services.update_progress(
        db_session, actor=owner, progress_id=rows[2].id, changes={"status": models.SubGoalStatus.PAGAENDE}
    )

    summary = services.progress_summary(db_session, profile.id)
    assert summary["total"] == 3
    assert summary["completed"] == 2
    assert summary["in_progress"] == 1
    assert summary["not_started"] == 0
    assert summary["percentage"] == 67
    assert len(summary["by_category"]) == 3
