from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from sagadb.apps.accounts.models import AccountRole
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.dashboard import services
from sagadb.apps.dashboard.services import RiskLevel
from sagadb.apps.policy.errors import Forbidden
from sagadb.apps.rotations import models as rotation_models
from sagadb.apps.supervision import models as supervision_models

TODAY = date(2025, 6, 1)


@pytest.mark.parametrize(
    "days, unsigned, expected",
    [
        (10, 0, RiskLevel.NONE),
        (61, 0, RiskLevel.LOW),
        (30, 3, RiskLevel.LOW),
        (91, 0, RiskLevel.MEDIUM),
        (30, 6, RiskLevel.MEDIUM),
        (181, 0, RiskLevel.HIGH),
        (0, 11, RiskLevel.HIGH),
        (services.NO_SUPERVISION_DAYS, 0, RiskLevel.HIGH),
    ],
)
def test_risk_level(days, unsigned, expected):
    assert services.risk_level(days, unsigned) == expected


def test_warnings_without_supervision():
    warnings = services.build_warnings(
        days_since_supervision=None,
        unsigned_assessments=0,
        current_rotation=None,
        today=TODAY,
    )
    assert warnings == [
        {"type": "OLD_SUPERVISION", "message": "Inget handledarsamtal registrerat", "severity": RiskLevel.HIGH}
    ]


def test_warnings_combined():
    rotation = rotation_models.Rotation(
        unit="Akuten",
        start_date=TODAY - timedelta(days=60),
        end_date=TODAY + timedelta(days=14),
    )
    warnings = services.build_warnings(
        days_since_supervision=120,
        unsigned_assessments=6,
        current_rotation=rotation,
        today=TODAY,
    )
    assert [(w["type"], w["severity"]) for w in warnings] == [
        ("OLD_SUPERVISION", RiskLevel.MEDIUM),
        ("UNSIGNED_ASSESSMENTS", RiskLevel.MEDIUM),
        ("ENDING_ROTATION", RiskLevel.LOW),
    ]
    assert warnings[2]["message"] == "Nuvarande placering slutar om 14 dagar"


def test_rotation_ending_today_is_not_warned():
    rotation = rotation_models.Rotation(unit="Akuten", start_date=TODAY - timedelta(days=60), end_date=TODAY)
    warnings = services.build_warnings(
        days_since_supervision=5,
        unsigned_assessments=0,
        current_rotation=rotation,
        today=TODAY,
    )
    assert warnings == []


def test_trainee_dashboard_ignores_voided_meetings(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    signed_at = datetime(2025, 5, 30, tzinfo=timezone.utc)
    db_session.add_all(
        [
            supervision_models.SupervisionMeeting(trainee_profile_id=profile.id, date=date(2025, 3, 3)),
            supervision_models.SupervisionMeeting(
                trainee_profile_id=profile.id,
                date=date(2025, 5, 29),
                signed_at=signed_at,
                voided_at=signed_at,
                voided_by_id=supervisor.id,
                void_reason="Fel",
            ),
            rotation_models.Rotation(
                trainee_profile_id=profile.id,
                unit="Ortopeden",
                start_date=date(2025, 5, 1),
                end_date=date(2025, 6, 10),
            ),
            assessment_models.Assessment(
                trainee_profile_id=profile.id,
                type=assessment_models.AssessmentType.DOPS,
                date=date(2025, 5, 20),
            ),
        ]
    )
    db_session.commit()

    dashboard = services.trainee_dashboard(db_session, profile, today=TODAY)

    assert dashboard["last_supervision"].date == date(2025, 3, 3)
    assert dashboard["days_since_last_supervision"] == 90
    assert dashboard["current_rotation"].unit == "Ortopeden"
    assert dashboard["unsigned_assessments"] == 1
    assert dashboard["certificates_count"] == 0
    assert [w["type"] for w in dashboard["warnings"]] == ["UNSIGNED_ASSESSMENTS", "ENDING_ROTATION"]


def test_clinic_overview_sorted_by_risk(db_session, make_clinic, make_user, make_trainee):
    clinic = make_clinic()
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=clinic)
    calm = make_trainee(clinic=clinic, name="Lugn")
    never = make_trainee(clinic=clinic, name="Aldrig")
    make_trainee(clinic=make_clinic("Annan"), name="Annan klinik")
    db_session.add(supervision_models.SupervisionMeeting(trainee_profile_id=calm.id, date=TODAY - timedelta(days=5)))
    db_session.commit()

    overview = services.clinic_overview(db_session, director, today=TODAY)

    assert overview["clinic_id"] == clinic.id
    assert [row["trainee_profile_id"] for row in overview["trainees"]] == [never.id, calm.id]
    assert overview["summary"]["total_trainees"] == 2
    assert overview["summary"]["high_risk"] == 1
    assert overview["trainees"][0]["days_since_supervision"] is None


def test_clinic_overview_access(db_session, make_clinic, make_user):
    own = make_clinic()
    other = make_clinic("Annan")
    director = make_user(AccountRole.STUDY_DIRECTOR, clinic=own)

    with pytest.raises(Forbidden):
        services.clinic_overview(db_session, director, clinic_id=other.id, today=TODAY)
    with pytest.raises(Forbidden):
        services.clinic_overview(db_session, make_user(AccountRole.SUPERVISOR), today=TODAY)

    admin = make_user(AccountRole.ADMIN)
    admin_view = services.clinic_overview(db_session, admin, clinic_id=other.id, today=TODAY)
    assert admin_view["summary"]["total_trainees"] == 0
    assert admin_view["summary"]["average_progress"] == 0
