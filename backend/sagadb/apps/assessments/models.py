# backend/sagadb/apps/assessments/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from sagadb.apps.policy.locks import SignableMixin
from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


class AssessmentType(str, enum.Enum):
    DOPS = "DOPS"           # Direct Observation of Procedural Skills
    MINI_CEX = "MINI_CEX"   # Mini Clinical Evaluation Exercise
    CBD = "CBD"             # Case-Based Discussion
    ANNAT = "ANNAT"


assessment_sub_goals = Table(
    "assessment_sub_goals",
    Base.metadata,
    Column("assessment_id", String(36), ForeignKey("assessments.id", ondelete="CASCADE"), primary_key=True),
    Column("sub_goal_id", String(36), ForeignKey("sub_goals.id", ondelete="CASCADE"), primary_key=True),
)


class Assessment(SignableMixin, Base):
    """
    Workplace-based assessment. The assessor signs it; signing records the
    signer as assessor.
    """

    __tablename__ = "assessments"
    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_assessments_rating"),
    )
    __signer_field__ = "assessor_id"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        Enum(AssessmentType, name="assessment_type_enum", native_enum=False),
        nullable=False,
    )
    date = Column(Date, nullable=False)
    context = Column(Text, nullable=True)
    assessor_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    rating = Column(Integer, nullable=True)
    narrative_feedback = Column(Text, nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    trainee_profile = relationship("TraineeProfile")
    assessor = relationship("User", foreign_keys=[assessor_id])
    sub_goals = relationship("SubGoal", secondary=assessment_sub_goals, lazy="selectin")
