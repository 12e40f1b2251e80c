# backend/sagadb/apps/subgoals/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from sagadb.apps.policy.locks import SignableMixin
from sagadb.apps.trainees.models import TrackType
from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class SubGoalStatus(str, enum.Enum):
    EJ_PABORJAD = "EJ_PABORJAD"   # not started
    PAGAENDE = "PAGAENDE"         # in progress
    UPPNADD = "UPPNADD"           # achieved


class SubGoalCategory(str, enum.Enum):
    MEDICINSK_KOMPETENS = "MEDICINSK_KOMPETENS"
    KOMMUNIKATION = "KOMMUNIKATION"
    LEDARSKAP = "LEDARSKAP"
    VETENSKAP = "VETENSKAP"
    PROFESSIONALISM = "PROFESSIONALISM"


# ---------------------------------------------------------------------------
# GOAL CATALOGUE
# ---------------------------------------------------------------------------


class GoalSpec(Base):
    """
    A published competency catalogue (målbeskrivning) for a track.

    New trainees get progress rows for every sub-goal of the latest spec
    matching their track type.
    """

    __tablename__ = "goal_specs"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False)
    track_type = Column(
        Enum(TrackType, name="goal_spec_track_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    specialty = Column(String(255), nullable=True)
    version = Column(String(32), nullable=False)
    source_url = Column(String(512), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, index=True)

    sub_goals = relationship(
        "SubGoal",
        back_populates="goal_spec",
        cascade="all, delete-orphan",
        order_by="SubGoal.sort_order",
    )


class SubGoal(Base):
    __tablename__ = "sub_goals"
    __table_args__ = (
        UniqueConstraint("goal_spec_id", "code", name="uq_sub_goals_spec_code"),
        Index("idx_sub_goals_spec_category", "goal_spec_id", "category", "sort_order"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    goal_spec_id = Column(
        String(36),
        ForeignKey("goal_specs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(
        Enum(SubGoalCategory, name="sub_goal_category_enum", native_enum=False),
        nullable=False,
    )
    sort_order = Column(Integer, nullable=False, default=0)

    goal_spec = relationship("GoalSpec", back_populates="sub_goals")


# ---------------------------------------------------------------------------
# PER-TRAINEE PROGRESS
# ---------------------------------------------------------------------------


class TraineeSubGoalProgress(SignableMixin, Base):
    """
    A trainee's status against one sub-goal. Signing marks it UPPNADD and
    freezes status and notes.
    """

    __tablename__ = "trainee_sub_goal_progress"
    __table_args__ = (
        UniqueConstraint("trainee_profile_id", "sub_goal_id", name="uq_progress_trainee_sub_goal"),
        Index("idx_progress_trainee_status", "trainee_profile_id", "status"),
    )
    __signer_field__ = "signed_by_id"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sub_goal_id = Column(
        String(36),
        ForeignKey("sub_goals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(
        Enum(SubGoalStatus, name="sub_goal_status_enum", native_enum=False),
        nullable=False,
        default=SubGoalStatus.EJ_PABORJAD,
    )
    notes = Column(Text, nullable=True)

    signed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    sub_goal = relationship("SubGoal", lazy="joined")
    signed_by = relationship("User", foreign_keys=[signed_by_id])
