"""Lesson periods: named, non-overlapping clock-time intervals forming the timetable's time axis."""

from datetime import datetime, timezone

from sqlalchemy import DDL, Boolean, CheckConstraint, Column, DateTime, Integer, String, Time, event

from app.db.session import Base


class LessonPeriod(Base):
    __tablename__ = "lesson_periods"
    __table_args__ = (CheckConstraint("start_time < end_time", name="ck_lesson_period_start_before_end"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


# Active periods may not overlap. Half-open ranges so back-to-back periods are allowed.
# Only PostgreSQL can express this; elsewhere the service-level check is the only guard.
event.listen(
    LessonPeriod.__table__,
    "after_create",
    DDL(
        "ALTER TABLE lesson_periods ADD CONSTRAINT ex_lesson_periods_active_overlap "
        "EXCLUDE USING gist ("
        "int4range(EXTRACT(EPOCH FROM start_time)::int, EXTRACT(EPOCH FROM end_time)::int) WITH &&"
        ") WHERE (is_active)"
    ).execute_if(dialect="postgresql"),
)
