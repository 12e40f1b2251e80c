# backend/sagadb/apps/supervision/models.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from sagadb.apps.policy.locks import SignableMixin
from sagadb.database import Base
from sagadb.utils.identifiers import generate_uuid7


class SupervisionMeeting(SignableMixin, Base):
    """
    Handledarsamtal. Once signed it can only be voided, never unsigned;
    voided meetings stay on record but are left out of every aggregate.
    """

    __tablename__ = "supervision_meetings"
    __table_args__ = (
        Index("idx_supervision_trainee_date", "trainee_profile_id", "date"),
    )
    __signer_field__ = "supervisor_id"
    __voidable__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    trainee_profile_id = Column(
        String(36),
        ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    agreed_actions = Column(Text, nullable=True)
    supervisor_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    signed_at = Column(DateTime(timezone=True), nullable=True)

    voided_at = Column(DateTime(timezone=True), nullable=True)
    voided_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    void_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    trainee_profile = relationship("TraineeProfile")
    supervisor = relationship("User", foreign_keys=[supervisor_id])
    voided_by = relationship("User", foreign_keys=[voided_by_id])
