# backend/sagadb/apps/rotations/models.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Table, Text
from sqlalchemy.orm import relationship

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


rotation_sub_goals = Table(
    "rotation_sub_goals",
    Base.metadata,
    Column("rotation_id", String(36), ForeignKey("rotations.id", ondelete="CASCADE"), primary_key=True),
    Column("sub_goal_id", String(36), ForeignKey("sub_goals.id", ondelete="CASCADE"), primary_key=True),
)


class Rotation(Base):
    """
    A clinical placement (placering). Planned rotations are drafts and are
    allowed to overlap; actual rotations are not.
    """

    __tablename__ = "rotations"
    __table_args__ = (
        Index("idx_rotations_trainee_start", "trainee_profile_id", "start_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit = Column(String(255), nullable=False)
    specialty_area = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    planned = Column(Boolean, nullable=False, default=False)
    supervisor_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    trainee_profile = relationship("TraineeProfile")
    sub_goals = relationship("SubGoal", secondary=rotation_sub_goals, lazy="selectin")
