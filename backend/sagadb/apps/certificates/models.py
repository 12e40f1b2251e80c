# backend/sagadb/apps/certificates/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, JSON, String, Table
from sqlalchemy.orm import relationship

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


class CertificateType(str, enum.Enum):
    TJANSTGORNINGSINTYG = "TJANSTGORNINGSINTYG"
    KURSINTYG = "KURSINTYG"
    KOMPETENSBEVIS = "KOMPETENSBEVIS"
    HANDLEDARINTYG = "HANDLEDARINTYG"
    OVRIGT = "OVRIGT"


certificate_sub_goals = Table(
    "certificate_sub_goals",
    Base.metadata,
    Column("certificate_id", String(36), ForeignKey("certificates.id", ondelete="CASCADE"), primary_key=True),
    Column("sub_goal_id", String(36), ForeignKey("sub_goals.id", ondelete="CASCADE"), primary_key=True),
)


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        Enum(CertificateType, name="certificate_type_enum", native_enum=False),
        nullable=False,
        default=CertificateType.OVRIGT,
    )
    title = Column(String(255), nullable=True)
    issue_date = Column(Date, nullable=True)
    issuer = Column(String(255), nullable=True)

    # Relative to STORAGE_PATH: "<trainee_profile_id>/<uuid><ext>"
    file_path = Column(String(512), nullable=False)
    file_name = Column(String(255), nullable=False)
    mime_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False)
    parsed_fields = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    sub_goals = relationship("SubGoal", secondary=certificate_sub_goals, lazy="selectin")
