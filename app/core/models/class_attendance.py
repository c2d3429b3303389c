"""Trainer check-ins per class. Written by the attendance collaborator; read here to report preserved history."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer

from app.db.session import Base


class ClassAttendance(Base):
    __tablename__ = "class_attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    timetable_slot_id = Column(Integer, ForeignKey("timetable_slots.id", ondelete="SET NULL"), nullable=True)
    check_in_time = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
