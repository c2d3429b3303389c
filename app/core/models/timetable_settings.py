"""Process-wide scheduling settings. Singleton row (id=1), created on first write."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer

from app.db.session import Base

SETTINGS_ROW_ID = 1


class TimetableSettings(Base):
    __tablename__ = "timetable_settings"
    __table_args__ = (CheckConstraint("id = 1", name="ck_timetable_settings_singleton"),)

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID, autoincrement=False)
    allow_admin_assignment = Column(Boolean, nullable=False, default=False)
    block_all_subject_selection = Column(Boolean, nullable=False, default=False)
    generation_deadline_enabled = Column(Boolean, nullable=False, default=False)
    timetable_generation_deadline = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
