"""Resource occupancy checks for timetable slots.

Trainer and room conflicts are one query keyed by a resource column: a resource is
occupied when a non-cancelled slot holds it for the same (term, day, period).
"""

from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import DAY_NAMES, SlotStatus
from app.core.exceptions import ValidationError
from app.core.models import TimetableSlot

from .schemas import CodedRef, NamedRef, SlotConflict

DAY_OF_WEEK_MESSAGE = "day_of_week must be between 0 (Sunday) and 6 (Saturday)"


class SlotResource(str, Enum):
    TRAINER = "trainer"
    ROOM = "room"


_RESOURCE_COLUMNS = {
    SlotResource.TRAINER: TimetableSlot.employee_id,
    SlotResource.ROOM: TimetableSlot.room_id,
}


def validate_day_of_week(day_of_week: int) -> int:
    if day_of_week < 0 or day_of_week > 6:
        raise ValidationError(DAY_OF_WEEK_MESSAGE, {"day_of_week": day_of_week})
    return day_of_week


def day_name(day_of_week: int) -> str:
    return DAY_NAMES[day_of_week]


async def find_occupying_slot(
    db: AsyncSession,
    resource: SlotResource,
    resource_id: int,
    term_id: int,
    day_of_week: int,
    lesson_period_id: int,
    exclude_slot_id: Optional[int] = None,
) -> Optional[TimetableSlot]:
    """The non-cancelled slot holding `resource_id` at (term, day, period), if any."""
    validate_day_of_week(day_of_week)
    column = _RESOURCE_COLUMNS[resource]
    stmt = (
        select(TimetableSlot)
        .where(
            column == resource_id,
            TimetableSlot.term_id == term_id,
            TimetableSlot.day_of_week == day_of_week,
            TimetableSlot.lesson_period_id == lesson_period_id,
            TimetableSlot.status != SlotStatus.CANCELLED.value,
        )
        .options(
            selectinload(TimetableSlot.subject),
            selectinload(TimetableSlot.school_class),
            selectinload(TimetableSlot.room),
            selectinload(TimetableSlot.trainer),
        )
        .order_by(TimetableSlot.id)
        .limit(1)
    )
    if exclude_slot_id is not None:
        stmt = stmt.where(TimetableSlot.id != exclude_slot_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def conflict_message(resource: SlotResource, slot: TimetableSlot) -> str:
    subject = slot.subject.name
    class_name = slot.school_class.name
    if resource is SlotResource.ROOM:
        return f'Room {slot.room.name} is already booked for "{subject}" ({class_name}) at this time'
    return f'Trainer {slot.trainer.name} is already scheduled for "{subject}" ({class_name}) in {slot.room.name} at this time'


def describe_conflict(resource: SlotResource, slot: TimetableSlot) -> SlotConflict:
    return SlotConflict(
        timetable_slot_id=slot.id,
        subject=CodedRef(id=slot.subject.id, name=slot.subject.name, code=slot.subject.code),
        school_class=CodedRef(id=slot.school_class.id, name=slot.school_class.name, code=slot.school_class.code),
        room=NamedRef(id=slot.room.id, name=slot.room.name),
        trainer=NamedRef(id=slot.trainer.id, name=slot.trainer.name),
        message=conflict_message(resource, slot),
    )
