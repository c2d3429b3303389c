from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from app.db.session import Base


class User(Base):
    """Trainer / administrator identity.

    Rows are provisioned by the HR collaborator; this service only reads them and
    maintains the individual selection-block flags.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    # admin | employee
    role = Column(String(50), nullable=False, default="employee")
    department = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Capability flag: timetable admin without the admin role
    has_timetable_admin = Column(Boolean, nullable=False, default=False)

    is_blocked = Column(Boolean, nullable=False, default=False)
    blocked_at = Column(DateTime(timezone=True), nullable=True)
    blocked_reason = Column(Text, nullable=True)
    blocked_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
