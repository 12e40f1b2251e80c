from __future__ import annotations

from datetime import date

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from sagadb.apps.accounts.models import AccountRole
from sagadb.apps.assessments import models as assessment_models
from sagadb.apps.assessments import router as assessment_router
from sagadb.apps.policy.errors import PayloadTooLarge, RecordLocked, as_http
from sagadb.main import app, health


def _make_request() -> Request:
    return Request({"type": "http", "headers": [], "client": ("127.0.0.1", 1234)})


def _route_methods(path: str) -> set:
    # The OpenAPI schema flattens included routers on every FastAPI version.
    operations = app.openapi()["paths"].get(path, {})
    return {method.upper() for method in operations}


def test_app_has_expected_routes():
    assert "POST" in _route_methods("/auth/login")
    assert "POST" in _route_methods("/auth/change-password")
    assert "POST" in _route_methods("/feedback/rotation/{rotation_id}")
    assert "GET" in _route_methods("/feedback/statistics")
    assert "POST" in _route_methods("/assessments/{assessment_id}/sign")
    assert "POST" in _route_methods("/supervision/{meeting_id}/void")
    assert "POST" in _route_methods("/certificates/upload")
    assert {"POST", "PATCH"} <= _route_methods("/notifications/read-all")
    assert "GET" in _route_methods("/dashboard/overview")
    assert "GET" in _route_methods("/export/package/{profile_id}")


def test_health():
    assert health() == {"status": "ok"}


def test_as_http_keeps_status_and_detail():
    too_large = as_http(PayloadTooLarge())
    assert too_large.status_code == 413
    assert too_large.detail == "Upload exceeds maximum file size"

    locked = as_http(RecordLocked("Signed assessments cannot be edited"))
    assert locked.status_code == 400
    assert locked.detail == "Signed assessments cannot be edited"


def test_router_translates_policy_errors(db_session, make_user, make_trainee):
    supervisor = make_user(AccountRole.SUPERVISOR)
    profile = make_trainee(supervisor=supervisor)
    assessment = assessment_models.Assessment(
        trainee_profile_id=profile.id,
        type=assessment_models.AssessmentType.DOPS,
        date=date(2025, 1, 15),
    )
    db_session.add(assessment)
    db_session.commit()

    signed = assessment_router.sign_assessment(
        assessment.id, _make_request(), db=db_session, current_user=supervisor
    )
    assert signed.signed_at is not None

    with pytest.raises(HTTPException) as excinfo:
        assessment_router.sign_assessment(
            assessment.id, _make_request(), db=db_session, current_user=supervisor
        )
    assert excinfo.value.status_code == 400

    with pytest.raises(HTTPException) as excinfo:
        assessment_router.get_assessment("missing", db=db_session, current_user=supervisor)
    assert excinfo.value.status_code == 404

    stranger = make_user(AccountRole.TRAINEE)
    with pytest.raises(HTTPException) as excinfo:
        assessment_router.get_assessment(assessment.id, db=db_session, current_user=stranger)
    assert excinfo.value.status_code == 403
