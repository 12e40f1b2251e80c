from __future__ import annotations

import os
import sys
from datetime import date
from itertools import count
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ.pop("NOTIFICATIONS_EMAIL_PROVIDER", None)
os.environ.pop("EMAIL_PROVIDER", None)

import sagadb  # noqa: E402,F401  registers every model on Base.metadata
from sagadb.apps.accounts.models import AccountRole, Clinic, User  # noqa: E402
from sagadb.apps.trainees.models import TraineeProfile, TrackType  # noqa: E402
from sagadb.database import Base  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


_seq = count(1)


@pytest.fixture()
def make_clinic(db_session):
    def _make(name: str = "Akademiska sjukhuset") -> Clinic:
        clinic = Clinic(name=name, organization="Region Uppsala")
        db_session.add(clinic)
        db_session.commit()
        return clinic

    return _make


@pytest.fixture()
def make_user(db_session):
    def _make(
        role: AccountRole = AccountRole.TRAINEE,
        *,
        clinic: Clinic | None = None,
        name: str | None = None,
        is_active: bool = True,
    ) -> User:
        n = next(_seq)
        user = User(
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            role=role,
            clinic_id=clinic.id if clinic else None,
            is_active=is_active,
            hashed_password="hash",
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def make_trainee(db_session, make_user):
    def _make(
        *,
        clinic: Clinic | None = None,
        supervisor: User | None = None,
        track_type: TrackType = TrackType.ST,
        start_date: date = date(2024, 1, 1),
        planned_end_date: date = date(2029, 1, 1),
        name: str | None = None,
    ) -> TraineeProfile:
        user = make_user(AccountRole.TRAINEE, clinic=clinic, name=name)
        profile = TraineeProfile(
            user_id=user.id,
            track_type=track_type,
            clinic_id=clinic.id if clinic else None,
            supervisor_id=supervisor.id if supervisor else None,
            start_date=start_date,
            planned_end_date=planned_end_date,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make
