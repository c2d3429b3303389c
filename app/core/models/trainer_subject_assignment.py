"""Trainer-subject assignment within an offering. One row per (trainer, subject, term), updated in place.

subject_id/term_id duplicate the offering's values; they are validated against the
ClassSubject row on every write and exist so the per-term uniqueness can be a constraint.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class TrainerSubjectAssignment(Base):
    __tablename__ = "trainer_subject_assignments"
    __table_args__ = (
        UniqueConstraint("trainer_id", "subject_id", "term_id", name="uq_trainer_subject_term"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    term_id = Column(Integer, ForeignKey("terms.id"), nullable=False)
    class_subject_id = Column(Integer, ForeignKey("class_subjects.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    trainer = relationship("User", foreign_keys=[trainer_id])
    subject = relationship("Subject", foreign_keys=[subject_id])
    class_subject = relationship("ClassSubject", foreign_keys=[class_subject_id])
