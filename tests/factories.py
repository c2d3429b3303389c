"""Row builders for seeding the test database directly."""

from datetime import date, time, timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import token_for_user
from app.core.models import ClassSubject, LessonPeriod, Room, SchoolClass, Subject, Term, TermClass


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for_user(user.id, user.role)}"}


async def _add(db: AsyncSession, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


async def make_user(
    db: AsyncSession,
    name: str,
    role: str = "employee",
    has_timetable_admin: bool = False,
    is_blocked: bool = False,
    is_active: bool = True,
) -> User:
    email = f"{name.lower().replace(' ', '.')}@example.com"
    return await _add(
        db,
        User(
            name=name,
            email=email,
            role=role,
            has_timetable_admin=has_timetable_admin,
            is_blocked=is_blocked,
            is_active=is_active,
        ),
    )


async def make_term(
    db: AsyncSession,
    name: str = "Spring",
    start: Optional[date] = None,
    end: Optional[date] = None,
    is_active: bool = True,
) -> Term:
    today = date.today()
    return await _add(
        db,
        Term(
            name=name,
            start_date=start or today - timedelta(days=30),
            end_date=end or today + timedelta(days=60),
            working_days=[1, 2, 3, 4, 5],
            holidays=[],
            is_active=is_active,
        ),
    )


async def make_class(db: AsyncSession, code: str, name: Optional[str] = None) -> SchoolClass:
    return await _add(db, SchoolClass(code=code, name=name or f"Class {code}", department="Engineering"))


async def make_subject(db: AsyncSession, code: str, name: Optional[str] = None, can_be_online: bool = True) -> Subject:
    return await _add(
        db,
        Subject(code=code, name=name or f"Subject {code}", department="Engineering", can_be_online=can_be_online),
    )


async def make_room(db: AsyncSession, name: str) -> Room:
    return await _add(db, Room(name=name, capacity=30, room_type="classroom", equipment=[]))


async def make_period(db: AsyncSession, name: str, start: time, end: time) -> LessonPeriod:
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    return await _add(db, LessonPeriod(name=name, start_time=start, end_time=end, duration_minutes=minutes))


async def make_offering(
    db: AsyncSession,
    school_class: SchoolClass,
    subject: Subject,
    term: Term,
    is_active: bool = True,
) -> ClassSubject:
    return await _add(
        db,
        ClassSubject(class_id=school_class.id, subject_id=subject.id, term_id=term.id, is_active=is_active),
    )


async def add_class_to_term(db: AsyncSession, term: Term, school_class: SchoolClass) -> TermClass:
    return await _add(db, TermClass(term_id=term.id, class_id=school_class.id))


