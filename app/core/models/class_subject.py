"""Offering: which subject is taught in which class for a term. Authority for 'is this subject offered here'."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class ClassSubject(Base):
    __tablename__ = "class_subjects"
    __table_args__ = (
        UniqueConstraint("class_id", "subject_id", "term_id", name="uq_class_subjects_class_subject_term"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    term_id = Column(Integer, ForeignKey("terms.id"), nullable=True)
    # Offerings start inactive; a trainer selecting the subject activates them
    is_active = Column(Boolean, nullable=False, default=False)
    assigned_by = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("Subject", foreign_keys=[subject_id])
    term = relationship("Term", foreign_keys=[term_id])
