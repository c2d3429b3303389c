"""Term (bounded academic period) and its class membership (TermClass)."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class Term(Base):
    __tablename__ = "terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    # Day numbers (0=Sunday .. 6=Saturday) on which lessons run
    working_days = Column(JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5])
    # ISO date strings inside [start_date, end_date]
    holidays = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    term_classes = relationship("TermClass", back_populates="term", cascade="all, delete-orphan")


class TermClass(Base):
    __tablename__ = "term_classes"
    __table_args__ = (UniqueConstraint("term_id", "class_id", name="uq_term_class"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    term_id = Column(Integer, ForeignKey("terms.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    term = relationship("Term", back_populates="term_classes")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
