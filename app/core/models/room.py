"""Physical rooms. Names are unique case-insensitively (functional unique index on lower(name))."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, func

from app.db.session import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=True)
    # classroom | lab | computer_lab | workshop | lecture_hall | studio | auditorium
    room_type = Column(String(50), nullable=False, default="classroom")
    equipment = Column(JSON, nullable=False, default=list)
    department = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


Index("uq_rooms_name_lower", func.lower(Room.name), unique=True)
