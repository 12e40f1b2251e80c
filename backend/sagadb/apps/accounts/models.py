# backend/sagadb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import relationship

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Closed set of portal roles.

    Each role has its own access rule; there is no hierarchy between them.
    """

    TRAINEE = "ST_BT"                 # ST/BT physician in training
    SUPERVISOR = "HANDLEDARE"         # Assigned mentor
    STUDY_DIRECTOR = "STUDIEREKTOR"   # Clinic-wide training director
    ADMIN = "ADMIN"


# ---------------------------------------------------------------------------
# CLINIC
# ---------------------------------------------------------------------------


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False, index=True)
    organization = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    users = relationship("User", back_populates="clinic")

    def __repr__(self) -> str:
        return f"<Clinic id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# USER
# ---------------------------------------------------------------------------


class User(Base):
    """
    Portal account. Trainees additionally own exactly one TraineeProfile.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
        Index("idx_users_clinic_role", "clinic_id", "role"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum", native_enum=False),
        nullable=False,
        default=AccountRole.TRAINEE,
        index=True,
    )

    clinic_id = Column(
        String(36),
        ForeignKey("clinics.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    hashed_password = Column(String(255), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    clinic = relationship("Clinic", back_populates="users")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
