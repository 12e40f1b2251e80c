# backend/seed_initial_data.py
"""
Bootstrap an empty database: one clinic, one admin account and the
ST Allmänmedicin goal catalogue. Safe to re-run; existing rows are kept.

    ADMIN_EMAIL=... ADMIN_PASSWORD=... python seed_initial_data.py
"""

from __future__ import annotations

import os

from sqlalchemy.orm import Session

import sagadb  # noqa: F401  registers every model
from sagadb.apps.accounts.models import AccountRole, Clinic, User
from sagadb.apps.subgoals.models import GoalSpec, SubGoal, SubGoalCategory
from sagadb.apps.trainees.models import TrackType
from sagadb.database import SessionLocal
from sagadb.security import get_password_hash

CLINIC_NAME = "Norrlands universitetssjukhus"
CLINIC_ORGANIZATION = "Region Västerbotten"

SPEC_NAME = "ST Allmänmedicin"
SPEC_VERSION = "2021"

# (code, title, category)
SUB_GOALS = [
    ("c1", "Akuta och potentiellt livshotande tillstånd", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c2", "Vanliga och viktiga sjukdomar och symtom", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c3", "Kroniska sjukdomar och multimorbiditet", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c4", "Psykisk ohälsa", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c5", "Barn och ungdomars hälsa", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c6", "Äldres hälsa", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c7", "Kvinnors hälsa", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c8", "Läkemedelsbehandling", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c9", "Palliativ vård", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("c10", "Preventivt arbete och hälsofrämjande", SubGoalCategory.MEDICINSK_KOMPETENS),
    ("b1", "Patientcentrerad konsultation", SubGoalCategory.KOMMUNIKATION),
    ("b2", "Information och delat beslutsfattande", SubGoalCategory.KOMMUNIKATION),
    ("b3", "Svåra besked", SubGoalCategory.KOMMUNIKATION),
    ("b4", "Interkulturell kommunikation", SubGoalCategory.KOMMUNIKATION),
    ("b5", "Kommunikation med närstående", SubGoalCategory.KOMMUNIKATION),
    ("b6", "Dokumentation", SubGoalCategory.KOMMUNIKATION),
    ("a1", "Teamarbete", SubGoalCategory.LEDARSKAP),
    ("a2", "Handledning", SubGoalCategory.LEDARSKAP),
    ("a3", "Prioritering och resurshushållning", SubGoalCategory.LEDARSKAP),
    ("a4", "Patientsäkerhet", SubGoalCategory.LEDARSKAP),
    ("a5", "Organisation och administration", SubGoalCategory.LEDARSKAP),
    ("d1", "Evidensbaserad medicin", SubGoalCategory.VETENSKAP),
    ("d2", "Kritisk granskning", SubGoalCategory.VETENSKAP),
    ("d3", "Kvalitetsarbete", SubGoalCategory.VETENSKAP),
    ("d4", "Forskningsmetodik", SubGoalCategory.VETENSKAP),
    ("d5", "Undervisning", SubGoalCategory.VETENSKAP),
    ("e1", "Etik och värdegrund", SubGoalCategory.PROFESSIONALISM),
    ("e2", "Lagar och förordningar", SubGoalCategory.PROFESSIONALISM),
    ("e3", "Egen utveckling", SubGoalCategory.PROFESSIONALISM),
    ("e4", "Hållbar läkarroll", SubGoalCategory.PROFESSIONALISM),
]


def ensure_clinic(db: Session) -> Clinic:
    clinic = db.query(Clinic).filter(Clinic.name == CLINIC_NAME).first()
    if clinic:
        return clinic
    clinic = Clinic(name=CLINIC_NAME, organization=CLINIC_ORGANIZATION)
    db.add(clinic)
    db.flush()
    return clinic


def ensure_admin(db: Session, clinic: Clinic, email: str, password: str) -> tuple[User, bool]:
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        return existing, False
    user = User(
        email=email,
        name="System Admin",
        role=AccountRole.ADMIN,
        clinic_id=clinic.id,
        is_active=True,
        hashed_password=get_password_hash(password),
    )
    db.add(user)
    db.flush()
    return user, True


def ensure_goal_spec(db: Session) -> tuple[GoalSpec, bool]:
    spec = (
        db.query(GoalSpec)
        .filter(GoalSpec.name == SPEC_NAME, GoalSpec.version == SPEC_VERSION)
        .first()
    )
    if spec:
        return spec, False
    spec = GoalSpec(
        name=SPEC_NAME,
        track_type=TrackType.ST,
        specialty="Allmänmedicin",
        version=SPEC_VERSION,
        source_url="https://www.socialstyrelsen.se",
    )
    spec.sub_goals = [
        SubGoal(
            code=code,
            title=title,
            description=f"Delmål {code}: {title}",
            category=category,
            sort_order=index,
        )
        for index, (code, title, category) in enumerate(SUB_GOALS, start=1)
    ]
    db.add(spec)
    db.flush()
    return spec, True


def main() -> None:
    email = os.getenv("ADMIN_EMAIL", "admin@saga.se").strip().lower()
    password = os.getenv("ADMIN_PASSWORD", "ChangeMe123!")

    db = SessionLocal()
    try:
        clinic = ensure_clinic(db)
        admin, admin_created = ensure_admin(db, clinic, email, password)
        spec, spec_created = ensure_goal_spec(db)
        db.commit()

        if admin_created:
            print("[OK] Created admin user:")
            print(f"  id:      {admin.id}")
            print(f"  email:   {admin.email}")
            print(f"  login password: {password}")
        else:
            print(f"[INFO] User already exists: id={admin.id}, email={admin.email}")

        if spec_created:
            print(f"[OK] Created goal spec {spec.name} {spec.version} with {len(SUB_GOALS)} sub-goals")
        else:
            print(f"[INFO] Goal spec already exists: id={spec.id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
