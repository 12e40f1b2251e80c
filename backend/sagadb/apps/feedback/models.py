# backend/sagadb/apps/feedback/models.py

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import backref, relationship

from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RotationFeedback(Base):
    """
    A trainee's evaluation of a finished rotation. One per rotation.

    Anonymous feedback still records the trainee profile; only the views
    shown to study directors drop the name.
    """

    __tablename__ = "rotation_feedback"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    rotation_id = Column(
        String(36),
        ForeignKey("rotations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 1-5 each
    overall_rating = Column(Integer, nullable=False)
    educational_value = Column(Integer, nullable=False)
    supervision_quality = Column(Integer, nullable=False)
    work_environment = Column(Integer, nullable=False)

    positives = Column(Text, nullable=True)
    improvements = Column(Text, nullable=True)
    other_comments = Column(Text, nullable=True)
    anonymous = Column(Boolean, nullable=False, default=False)

    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    rotation = relationship(
        "Rotation",
        backref=backref("feedback", uselist=False, cascade="all, delete-orphan", passive_deletes=True),
    )
    trainee_profile = relationship("TraineeProfile")

    def __repr__(self) -> str:
        return f"<RotationFeedback id={self.id} rotation_id={self.rotation_id}>"
