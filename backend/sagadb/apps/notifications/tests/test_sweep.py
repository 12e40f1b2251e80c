from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from sagadb.apps.accounts.models import AccountRole
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.notifications import models, sweep
from sagadb.apps.notifications.service import get_or_create_preferences
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.supervision import models as supervision_models

NOW = datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def _notifications(db_session, user_id, type=None):
    query = db_session.query(models.Notification).filter(models.Notification.user_id == user_id)
    if type is not None:
        query = query.filter(models.Notification.type == type)
    return query.all()


def _meeting(db_session, profile, when, **extra):
    meeting = supervision_models.SupervisionMeeting(trainee_profile_id=profile.id, date=when, **extra)
    db_session.add(meeting)
    db_session.commit()
    return meeting


def test_supervision_reminder_without_any_meeting(db_session, make_trainee):
    profile = make_trainee()

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 1

    [notification] = _notifications(db_session, profile.user_id)
    assert notification.type == models.NotificationType.SUPERVISION_REMINDER
    assert notification.title == "Påminnelse om handledning"
    assert notification.message.startswith("Det har gått 90 dagar sedan ditt senaste handledarsamtal")
    assert notification.link == "/supervision"


def test_supervision_reminder_counts_days_since_last_meeting(db_session, make_trainee):
    profile = make_trainee()
    _meeting(db_session, profile, TODAY - timedelta(days=120))

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 1
    [notification] = _notifications(db_session, profile.user_id)
    assert "Det har gått 120 dagar" in notification.message


def test_recent_meeting_suppresses_reminder(db_session, make_trainee):
    profile = make_trainee()
    _meeting(db_session, profile, TODAY - timedelta(days=30))

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 0


def test_voided_meeting_does_not_count_as_supervision(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    _meeting(
        db_session,
        profile,
        TODAY - timedelta(days=10),
        signed_at=NOW - timedelta(days=9),
        voided_at=NOW - timedelta(days=8),
        voided_by_id=supervisor.id,
        void_reason="Fel patient",
    )

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 1


def test_supervision_reminder_respects_preference(db_session, make_trainee):
    profile = make_trainee()
    pref = get_or_create_preferences(db_session, profile.user_id)
    pref.supervision_reminders = False
    db_session.commit()

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 0


def test_rotation_reminders(db_session, make_trainee):
    profile = make_trainee()
    db_session.add_all(
        [
            rotation_models.Rotation(
                trainee_profile_id=profile.id,
                unit="Kirurgkliniken",
                start_date=TODAY + timedelta(days=5),
                end_date=TODAY + timedelta(days=95),
            ),
            rotation_models.Rotation(
                trainee_profile_id=profile.id,
                unit="Medicinkliniken",
                start_date=TODAY - timedelta(days=85),
                end_date=TODAY + timedelta(days=3),
            ),
        ]
    )
    db_session.commit()

    assert sweep.check_rotations(db_session, now=NOW) == 2

    [starting] = _notifications(db_session, profile.user_id, models.NotificationType.ROTATION_STARTING)
    assert starting.message == "Din placering på Kirurgkliniken startar om 5 dagar"
    [ending] = _notifications(db_session, profile.user_id, models.NotificationType.ROTATION_ENDING)
    assert ending.message == "Din placering på Medicinkliniken slutar om 3 dagar"


def test_deadline_reminder_uses_preference_window(db_session, make_trainee):
    profile = make_trainee(planned_end_date=TODAY + timedelta(days=45))
    assert sweep.check_deadlines(db_session, now=NOW) == 0

    pref = get_or_create_preferences(db_session, profile.user_id)
    pref.days_before_deadline = 60
    db_session.commit()

    assert sweep.check_deadlines(db_session, now=NOW) == 1
    [notification] = _notifications(db_session, profile.user_id)
    assert notification.message == "Ditt planerade slutdatum för utbildningen är om 45 dagar"


def test_unsigned_assessments_are_grouped_per_assessor(db_session, make_user, make_trainee):
    single = make_user(AccountRole.SUPERVISOR)
    busy = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(name="Sara Lind")

    def _add(assessor, kind):
        db_session.add(
            assessment_models.Assessment(
                trainee_profile_id=profile.id,
                type=kind,
                date=TODAY - timedelta(days=3),
                assessor_id=assessor.id,
            )
        )

    _add(single, assessment_models.AssessmentType.DOPS)
    _add(busy, assessment_models.AssessmentType.CBD)
    _add(busy, assessment_models.AssessmentType.MINI_CEX)
    db_session.commit()

    assert sweep.check_unsigned_assessments(db_session, now=NOW) == 2

    [one] = _notifications(db_session, single.id)
    assert one.message == "Sara Lind har en DOPS-bedömning som väntar på din signatur"
    [many] = _notifications(db_session, busy.id)
    assert many.message == "Du har 2 osignerade bedömningar som väntar"


def test_unsigned_cooldown_is_one_day(db_session, make_user, make_trainee):
    assessor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee()
    db_session.add(
        assessment_models.Assessment(
            trainee_profile_id=profile.id,
            type=assessment_models.AssessmentType.DOPS,
            date=TODAY,
            assessor_id=assessor.id,
        )
    )
    db_session.commit()

    assert sweep.check_unsigned_assessments(db_session, now=NOW) == 1
    assert sweep.check_unsigned_assessments(db_session, now=NOW + timedelta(hours=23)) == 0
    assert sweep.check_unsigned_assessments(db_session, now=NOW + timedelta(hours=25)) == 1


def test_full_sweep_is_idempotent(db_session, make_user, make_trainee):
    assessor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(planned_end_date=TODAY + timedelta(days=10))
    db_session.add(
        rotation_models.Rotation(
            trainee_profile_id=profile.id,
            unit="Akuten",
            start_date=TODAY + timedelta(days=2),
            end_date=TODAY + timedelta(days=6),
        )
    )
    db_session.add(
        assessment_models.Assessment(
            trainee_profile_id=profile.id,
            type=assessment_models.AssessmentType.CBD,
            date=TODAY,
            assessor_id=assessor.id,
        )
    )
    db_session.commit()

    first = sweep.run_notification_checks(db_session, now=NOW)
    total_after_first = db_session.query(models.Notification).count()

    second = sweep.run_notification_checks(db_session, now=NOW + timedelta(hours=1))

    assert first == {
        "supervision_reminders": 1,
        "rotation_reminders": 2,
        "deadline_reminders": 1,
        "unsigned_assessment_reminders": 1,
    }
    assert second == {
        "supervision_reminders": 0,
        "rotation_reminders": 0,
        "deadline_reminders": 0,
        "unsigned_assessment_reminders": 0,
    }
    assert db_session.query(models.Notification).count() == total_after_first == 5


def test_failing_item_does_not_stop_the_check(db_session, make_trainee, monkeypatch):
    broken = make_trainee()
    healthy = make_trainee()
    original = sweep.supervision_services.last_active_meeting

    def _flaky(db, profile_id):
        if profile_id == broken.id:
            raise RuntimeError("boom")
        return original(db, profile_id)

    monkeypatch.setattr(sweep.supervision_services, "last_active_meeting", _flaky)

    assert sweep.check_supervision_gaps(db_session, now=NOW) == 1
    assert _notifications(db_session, healthy.user_id)
    assert not _notifications(db_session, broken.user_id)
