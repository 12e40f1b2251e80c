from __future__ import annotations

import bcrypt
import pytest
from fastapi import HTTPException
from jose import jwt
from starlette.requests import Request

from sagadb import security
from sagadb.apps.accounts import models, schemas, services
from sagadb.apps.accounts.router_public import change_password, login
from sagadb.apps.audit import models as audit_models
from sagadb.apps.policy.errors import ValidationFailed


def _make_request() -> Request:
    return Request(
        {
            "type": "http",
            "headers": [(b"user-agent", b"pytest")],
            "client": ("127.0.0.1", 1234),
        }
    )


def _create_user(db_session, *, password="hemligt1", is_active=True) -> models.User:
    user = models.User(
        email="st.lakare@example.com",
        name="ST Läkare",
        role=models.AccountRole.TRAINEE,
        is_active=is_active,
        hashed_password=security.get_password_hash(password),
    )
    db_session.add(user)
    db_session.commit()
    return user


def test_login_returns_token_for_user(db_session):
    user = _create_user(db_session)

    token = login(
        schemas.LoginRequest(email="ST.Lakare@example.com", password="hemligt1"),
        _make_request(),
        db=db_session,
    )

    payload = jwt.decode(token.access_token, security.SECRET_KEY, algorithms=[security.JWT_ALGORITHM])
    assert payload["sub"] == user.id
    assert payload["role"] == "ST_BT"
    assert token.expires_in == 7 * 24 * 60 * 60
    assert token.user.email == "st.lakare@example.com"

    assert security.get_current_user(token=token.access_token, db=db_session).id == user.id
    db_session.refresh(user)
    assert user.last_login_at is not None
    event = db_session.query(audit_models.AuditEvent).one()
    assert event.entity_type == "Session"
    assert event.ip_address == "127.0.0.1"


def test_wrong_password_is_unauthorised(db_session):
    _create_user(db_session)

    with pytest.raises(HTTPException) as excinfo:
        login(
            schemas.LoginRequest(email="st.lakare@example.com", password="fel"),
            _make_request(),
            db=db_session,
        )
    assert excinfo.value.status_code == 401


def test_inactive_account_cannot_log_in(db_session):
    _create_user(db_session, is_active=False)

    with pytest.raises(services.AuthenticationError):
        services.authenticate_user(
            db_session,
            login_req=schemas.LoginRequest(email="st.lakare@example.com", password="hemligt1"),
        )


def test_legacy_bcrypt_hash_still_verifies():
    legacy = bcrypt.hashpw(b"gammalt1", bcrypt.gensalt()).decode()
    assert security.verify_password("gammalt1", legacy)
    assert not security.verify_password("fel", legacy)


def test_role_guard_rejects_other_roles(make_user):
    guard = security.require_roles(models.AccountRole.STUDY_DIRECTOR)
    with pytest.raises(HTTPException) as excinfo:
        guard(current_user=make_user(models.AccountRole.SUPERVISOR))
    assert excinfo.value.status_code == 403


def test_change_password_rehashes_and_audits(db_session):
    user = _create_user(db_session)
    old_hash = user.hashed_password

    result = change_password(
        schemas.ChangePasswordRequest(current_password="hemligt1", new_password="nyttlosen"),
        _make_request(),
        db=db_session,
        current_user=user,
    )

    assert result == {"success": True}
    db_session.refresh(user)
    assert user.hashed_password != old_hash
    assert security.verify_password("nyttlosen", user.hashed_password)
    assert not security.verify_password("hemligt1", user.hashed_password)

    event = db_session.query(audit_models.AuditEvent).one()
    assert event.action == audit_models.AuditAction.UPDATE
    assert event.entity_type == "User"
    assert event.after == {"password_changed": True}


def test_change_password_requires_current_password(db_session):
    user = _create_user(db_session)
    old_hash = user.hashed_password

    with pytest.raises(HTTPException) as excinfo:
        change_password(
            schemas.ChangePasswordRequest(current_password="fel", new_password="nyttlosen"),
            _make_request(),
            db=db_session,
            current_user=user,
        )
    assert excinfo.value.status_code == 401
    db_session.refresh(user)
    assert user.hashed_password == old_hash
    assert db_session.query(audit_models.AuditEvent).count() == 0


def test_change_password_enforces_minimum_length(db_session):
    user = _create_user(db_session)

    with pytest.raises(ValidationFailed):
        services.change_password(db_session, user, current_password="hemligt1", new_password="kort")
    with pytest.raises(ValueError):
        schemas.ChangePasswordRequest(current_password="hemligt1", new_password="kort")
