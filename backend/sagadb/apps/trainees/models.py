# backend/sagadb/apps/trainees/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import relationship

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


class TrackType(str, enum.Enum):
    ST = "ST"   # Specialisttjänstgöring
    BT = "BT"   # Bastjänstgöring


class TraineeProfile(Base):
    """
    One per trainee user. Owns every trainee-scoped record (rotations,
    courses, assessments, supervision meetings, certificates, progress).

    `clinic_id` and `supervisor_id` drive access decisions and may be
    reassigned at any time.
    """

    __tablename__ = "trainee_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    track_type = Column(
        Enum(TrackType, name="track_type_enum", native_enum=False),
        nullable=False,
        default=TrackType.ST,
    )
    specialty = Column(String(255), nullable=True)

    clinic_id = Column(
        String(36),
        ForeignKey("clinics.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    supervisor_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    start_date = Column(Date, nullable=False)
    planned_end_date = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    user = relationship("User", foreign_keys=[user_id], lazy="joined")
    supervisor = relationship("User", foreign_keys=[supervisor_id])
    clinic = relationship("Clinic")

    def __repr__(self) -> str:
        return f"<TraineeProfile id={self.id} user_id={self.user_id} track={self.track_type}>"
