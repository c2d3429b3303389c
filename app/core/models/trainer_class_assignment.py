from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.session import Base


class TrainerClassAssignment(Base):
    """Coarse trainer-to-class link. Never hard-deleted: attendance history refers to the pairing."""

    __tablename__ = "trainer_class_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    term_id = Column(Integer, ForeignKey("terms.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    assigned_by = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    trainer = relationship("User", foreign_keys=[trainer_id])
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
