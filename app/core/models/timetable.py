"""Timetable slot: (class, subject, trainer, room, day, lesson period) placed within a term.

Occupancy is enforced by two partial unique indexes over non-cancelled rows: a trainer
and a room can each hold at most one slot per (term, day, period).
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from app.db.session import Base

_NOT_CANCELLED = text("status <> 'cancelled'")


class TimetableSlot(Base):
    __tablename__ = "timetable_slots"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_timetable_slots_day_of_week"),
        Index(
            "uq_timetable_slots_trainer_occupancy",
            "employee_id", "term_id", "day_of_week", "lesson_period_id",
            unique=True,
            sqlite_where=_NOT_CANCELLED,
            postgresql_where=_NOT_CANCELLED,
        ),
        Index(
            "uq_timetable_slots_room_occupancy",
            "room_id", "term_id", "day_of_week", "lesson_period_id",
            unique=True,
            sqlite_where=_NOT_CANCELLED,
            postgresql_where=_NOT_CANCELLED,
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    term_id = Column(Integer, ForeignKey("terms.id"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    lesson_period_id = Column(Integer, ForeignKey("lesson_periods.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    # scheduled | active | completed | cancelled
    status = Column(String(20), nullable=False, default="scheduled")
    is_online_session = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    term = relationship("Term", foreign_keys=[term_id])
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("Subject", foreign_keys=[subject_id])
    trainer = relationship("User", foreign_keys=[employee_id])
    room = relationship("Room", foreign_keys=[room_id])
    lesson_period = relationship("LessonPeriod", foreign_keys=[lesson_period_id])
