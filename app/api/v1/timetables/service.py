import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.class_subjects import service as class_subjects_service
from app.api.v1.terms import service as terms_service
from app.api.v1.timetable_settings.service import ensure_selection_open
from app.auth.rbac import has_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.enums import TRAINER_ROLES, SlotStatus
from app.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.core.models import ClassAttendance, LessonPeriod, Room, SchoolClass, Subject, Term, TimetableSlot, User
from app.core.schemas import DeleteResponse

from .conflicts import (
    SlotResource,
    conflict_message,
    day_name,
    describe_conflict,
    find_occupying_slot,
    validate_day_of_week,
)
from .schemas import (
    DaySchedule,
    LessonPeriodRef,
    NamedRef,
    RoomAvailabilityResponse,
    SlotDetails,
    TimetableSlotCreate,
    TimetableSlotResponse,
    TimetableSlotUpdate,
    TrainerAvailabilityResponse,
    TrainerDaySchedule,
    TrainerWeekSchedule,
)

logger = logging.getLogger(__name__)

RACE_CONFLICT_MESSAGE = "Scheduling conflict: the trainer or room was booked by another request"


def _to_response(slot: TimetableSlot) -> TimetableSlotResponse:
    period = slot.lesson_period
    return TimetableSlotResponse(
        id=slot.id,
        term_id=slot.term_id,
        class_id=slot.class_id,
        subject_id=slot.subject_id,
        employee_id=slot.employee_id,
        room_id=slot.room_id,
        lesson_period_id=slot.lesson_period_id,
        day_of_week=slot.day_of_week,
        day_name=day_name(slot.day_of_week),
        status=slot.status,
        is_online_session=slot.is_online_session,
        class_name=slot.school_class.name if slot.school_class else None,
        subject_name=slot.subject.name if slot.subject else None,
        trainer_name=slot.trainer.name if slot.trainer else None,
        room_name=slot.room.name if slot.room else None,
        start_time=period.start_time if period else None,
        end_time=period.end_time if period else None,
        created_at=slot.created_at,
    )


def _slot_query():
    return select(TimetableSlot).options(
        selectinload(TimetableSlot.school_class),
        selectinload(TimetableSlot.subject),
        selectinload(TimetableSlot.trainer),
        selectinload(TimetableSlot.room),
        selectinload(TimetableSlot.lesson_period),
    )


async def _load_slot(db: AsyncSession, slot_id: int) -> TimetableSlot:
    result = await db.execute(
        _slot_query().where(TimetableSlot.id == slot_id).execution_options(populate_existing=True)
    )
    slot = result.scalar_one_or_none()
    if not slot:
        raise NotFoundError("Timetable slot not found", {"timetable_slot_id": slot_id})
    return slot


# Reference lookups shared by availability checks and slot writes


async def _get_trainer(db: AsyncSession, trainer_id: int) -> User:
    trainer = await db.get(User, trainer_id)
    if not trainer or not trainer.is_active:
        raise NotFoundError("Trainer not found or inactive", {"trainer_id": trainer_id})
    if trainer.role not in TRAINER_ROLES:
        raise ValidationError("Only employees can be assigned to timetable slots", {"trainer_id": trainer_id})
    return trainer


async def _get_term(db: AsyncSession, term_id: int) -> Term:
    term = await db.get(Term, term_id)
    if not term:
        raise NotFoundError("Term not found", {"term_id": term_id})
    return term


async def _get_active_period(db: AsyncSession, lesson_period_id: int) -> LessonPeriod:
    period = await db.get(LessonPeriod, lesson_period_id)
    if not period or not period.is_active:
        raise NotFoundError("Lesson period not found or inactive", {"lesson_period_id": lesson_period_id})
    return period


async def _get_active_room(db: AsyncSession, room_id: int) -> Room:
    room = await db.get(Room, room_id)
    if not room or not room.is_active:
        raise NotFoundError("Room not found or inactive", {"room_id": room_id})
    return room


async def _get_active_class(db: AsyncSession, class_id: int) -> SchoolClass:
    cl = await db.get(SchoolClass, class_id)
    if not cl or not cl.is_active:
        raise NotFoundError("Class not found or inactive", {"class_id": class_id})
    return cl


async def _get_active_subject(db: AsyncSession, subject_id: int) -> Subject:
    subject = await db.get(Subject, subject_id)
    if not subject or not subject.is_active:
        raise NotFoundError("Subject not found or inactive", {"subject_id": subject_id})
    return subject


def _slot_details(term: Term, day_of_week: int, period: LessonPeriod) -> SlotDetails:
    return SlotDetails(
        term_id=term.id,
        term_name=term.name,
        day_of_week=day_of_week,
        day_name=day_name(day_of_week),
        lesson_period=LessonPeriodRef(
            id=period.id,
            name=period.name,
            start_time=period.start_time,
            end_time=period.end_time,
            duration_minutes=period.duration_minutes,
        ),
    )


async def check_trainer_availability(
    db: AsyncSession,
    trainer_id: int,
    term_id: int,
    day_of_week: int,
    lesson_period_id: int,
    exclude_slot_id: Optional[int] = None,
) -> TrainerAvailabilityResponse:
    """Is the trainer free at (term, day, period)? `exclude_slot_id` ignores the slot being edited."""
    validate_day_of_week(day_of_week)
    trainer = await _get_trainer(db, trainer_id)
    term = await _get_term(db, term_id)
    period = await _get_active_period(db, lesson_period_id)
    slot = await find_occupying_slot(
        db, SlotResource.TRAINER, trainer_id, term_id, day_of_week, lesson_period_id, exclude_slot_id
    )
    return TrainerAvailabilityResponse(
        trainer=NamedRef(id=trainer.id, name=trainer.name),
        slot_details=_slot_details(term, day_of_week, period),
        is_available=slot is None,
        conflict=describe_conflict(SlotResource.TRAINER, slot) if slot else None,
    )


async def check_room_availability(
    db: AsyncSession,
    room_id: int,
    term_id: int,
    day_of_week: int,
    lesson_period_id: int,
    exclude_slot_id: Optional[int] = None,
) -> RoomAvailabilityResponse:
    validate_day_of_week(day_of_week)
    room = await _get_active_room(db, room_id)
    term = await _get_term(db, term_id)
    period = await _get_active_period(db, lesson_period_id)
    slot = await find_occupying_slot(
        db, SlotResource.ROOM, room_id, term_id, day_of_week, lesson_period_id, exclude_slot_id
    )
    return RoomAvailabilityResponse(
        room=NamedRef(id=room.id, name=room.name),
        slot_details=_slot_details(term, day_of_week, period),
        is_available=slot is None,
        conflict=describe_conflict(SlotResource.ROOM, slot) if slot else None,
    )


async def _ensure_placeable(
    db: AsyncSession,
    term_id: int,
    class_id: int,
    subject_id: int,
    is_online_session: bool,
) -> None:
    subject = await _get_active_subject(db, subject_id)
    if is_online_session and not subject.can_be_online:
        raise ValidationError("This subject cannot be delivered online", {"subject_id": subject_id})
    if not await terms_service.is_class_in_term(db, term_id, class_id):
        raise ValidationError("Class not assigned to term", {"class_id": class_id, "term_id": term_id})
    if not await class_subjects_service.find_offering(db, class_id, subject_id, term_id):
        raise ValidationError(
            "Subject is not offered to this class for this term",
            {"class_id": class_id, "subject_id": subject_id, "term_id": term_id},
        )


async def _ensure_unoccupied(
    db: AsyncSession,
    employee_id: int,
    room_id: int,
    term_id: int,
    day_of_week: int,
    lesson_period_id: int,
    exclude_slot_id: Optional[int] = None,
) -> None:
    for resource, resource_id in ((SlotResource.ROOM, room_id), (SlotResource.TRAINER, employee_id)):
        slot = await find_occupying_slot(
            db, resource, resource_id, term_id, day_of_week, lesson_period_id, exclude_slot_id
        )
        if slot is not None:
            logger.warning(
                "Slot placement rejected: %s %s busy at term %s day %s period %s (slot %s)",
                resource.value, resource_id, term_id, day_of_week, lesson_period_id, slot.id,
            )
            conflict = describe_conflict(resource, slot)
            raise ConflictError(
                f"Scheduling conflict: {conflict_message(resource, slot)}",
                {"resource": resource.value, "conflict": conflict.model_dump(by_alias=True)},
            )


async def create_slot(db: AsyncSession, payload: TimetableSlotCreate) -> TimetableSlotResponse:
    validate_day_of_week(payload.day_of_week)
    await _get_term(db, payload.term_id)
    await _get_active_class(db, payload.class_id)
    await _get_trainer(db, payload.employee_id)
    await _get_active_room(db, payload.room_id)
    await _get_active_period(db, payload.lesson_period_id)
    await _ensure_placeable(db, payload.term_id, payload.class_id, payload.subject_id, payload.is_online_session)
    if payload.status is not SlotStatus.CANCELLED:
        await _ensure_unoccupied(
            db, payload.employee_id, payload.room_id, payload.term_id, payload.day_of_week, payload.lesson_period_id
        )

    slot = TimetableSlot(
        term_id=payload.term_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        employee_id=payload.employee_id,
        room_id=payload.room_id,
        lesson_period_id=payload.lesson_period_id,
        day_of_week=payload.day_of_week,
        status=payload.status.value,
        is_online_session=payload.is_online_session,
    )
    db.add(slot)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(RACE_CONFLICT_MESSAGE)
    logger.info(
        "Slot %s created: trainer %s room %s term %s day %s period %s",
        slot.id, slot.employee_id, slot.room_id, slot.term_id, slot.day_of_week, slot.lesson_period_id,
    )
    return _to_response(await _load_slot(db, slot.id))


async def list_slots(
    db: AsyncSession,
    caller: CurrentUser,
    term_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    class_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    room_id: Optional[int] = None,
    day_of_week: Optional[int] = None,
    is_online_session: Optional[bool] = None,
    include_cancelled: bool = False,
) -> List[TimetableSlotResponse]:
    """Trainers without scheduling privilege only see their own slots."""
    if not has_scheduling_privilege(caller):
        employee_id = caller.id
    stmt = _slot_query().join(LessonPeriod, LessonPeriod.id == TimetableSlot.lesson_period_id)
    if term_id is not None:
        stmt = stmt.where(TimetableSlot.term_id == term_id)
    if employee_id is not None:
        stmt = stmt.where(TimetableSlot.employee_id == employee_id)
    if class_id is not None:
        stmt = stmt.where(TimetableSlot.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(TimetableSlot.subject_id == subject_id)
    if room_id is not None:
        stmt = stmt.where(TimetableSlot.room_id == room_id)
    if day_of_week is not None:
        stmt = stmt.where(TimetableSlot.day_of_week == validate_day_of_week(day_of_week))
    if is_online_session is not None:
        stmt = stmt.where(TimetableSlot.is_online_session.is_(is_online_session))
    if not include_cancelled:
        stmt = stmt.where(TimetableSlot.status != SlotStatus.CANCELLED.value)
    stmt = stmt.order_by(TimetableSlot.day_of_week, LessonPeriod.start_time, TimetableSlot.id)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


def _ensure_can_view(slot: TimetableSlot, caller: CurrentUser) -> None:
    if slot.employee_id != caller.id and not has_scheduling_privilege(caller):
        raise PermissionDeniedError("You can only access your own timetable slots", {"timetable_slot_id": slot.id})


async def get_slot(db: AsyncSession, slot_id: int, caller: CurrentUser) -> TimetableSlotResponse:
    slot = await _load_slot(db, slot_id)
    _ensure_can_view(slot, caller)
    return _to_response(slot)


async def update_slot(
    db: AsyncSession,
    slot_id: int,
    payload: TimetableSlotUpdate,
    caller: CurrentUser,
) -> TimetableSlotResponse:
    """Reschedule or edit a slot. A trainer may edit their own slots but not hand them to someone else."""
    slot = await _load_slot(db, slot_id)
    _ensure_can_view(slot, caller)
    privileged = has_scheduling_privilege(caller)
    if not privileged:
        if payload.employee_id is not None and payload.employee_id != slot.employee_id:
            raise PermissionDeniedError(
                "Only administrators can reassign a slot to another trainer", {"timetable_slot_id": slot_id}
            )
        await ensure_selection_open(db, caller, "timetable")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    term_id = changes.get("term_id", slot.term_id)
    class_id = changes.get("class_id", slot.class_id)
    subject_id = changes.get("subject_id", slot.subject_id)
    employee_id = changes.get("employee_id", slot.employee_id)
    room_id = changes.get("room_id", slot.room_id)
    lesson_period_id = changes.get("lesson_period_id", slot.lesson_period_id)
    day_of_week = validate_day_of_week(changes.get("day_of_week", slot.day_of_week))
    status = changes["status"].value if "status" in changes else slot.status
    is_online_session = changes.get("is_online_session", slot.is_online_session)

    if term_id != slot.term_id:
        await _get_term(db, term_id)
    if class_id != slot.class_id:
        await _get_active_class(db, class_id)
    if employee_id != slot.employee_id:
        await _get_trainer(db, employee_id)
    if room_id != slot.room_id:
        await _get_active_room(db, room_id)
    if lesson_period_id != slot.lesson_period_id:
        await _get_active_period(db, lesson_period_id)
    if (term_id, class_id, subject_id) != (slot.term_id, slot.class_id, slot.subject_id) or (
        is_online_session and not slot.is_online_session
    ):
        await _ensure_placeable(db, term_id, class_id, subject_id, is_online_session)
    if status != SlotStatus.CANCELLED.value:
        await _ensure_unoccupied(
            db, employee_id, room_id, term_id, day_of_week, lesson_period_id, exclude_slot_id=slot_id
        )

    slot.term_id = term_id
    slot.class_id = class_id
    slot.subject_id = subject_id
    slot.employee_id = employee_id
    slot.room_id = room_id
    slot.lesson_period_id = lesson_period_id
    slot.day_of_week = day_of_week
    slot.status = status
    slot.is_online_session = is_online_session
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(RACE_CONFLICT_MESSAGE, {"timetable_slot_id": slot_id})
    logger.info("Slot %s updated by user %s: %s", slot_id, caller.id, sorted(changes))
    return _to_response(await _load_slot(db, slot_id))


async def cancel_slot(db: AsyncSession, slot_id: int) -> TimetableSlotResponse:
    """Cancelled slots stay for attendance history and no longer occupy their trainer or room."""
    slot = await _load_slot(db, slot_id)
    if slot.status != SlotStatus.CANCELLED.value:
        slot.status = SlotStatus.CANCELLED.value
        await db.commit()
        logger.info("Slot %s cancelled", slot_id)
    return _to_response(slot)


async def delete_slot(db: AsyncSession, slot_id: int) -> DeleteResponse:
    slot = await _load_slot(db, slot_id)
    result = await db.execute(
        select(func.count(ClassAttendance.id)).where(ClassAttendance.timetable_slot_id == slot_id)
    )
    attendance = result.scalar_one()
    if attendance:
        slot.status = SlotStatus.CANCELLED.value
        await db.commit()
        logger.info("Slot %s cancelled instead of deleted (%d attendance records)", slot_id, attendance)
        return DeleteResponse(
            id=slot_id,
            message="Slot has attendance records and was cancelled instead of deleted",
            deactivated=True,
            references=attendance,
        )
    await db.delete(slot)
    await db.commit()
    logger.info("Slot %s deleted", slot_id)
    return DeleteResponse(id=slot_id, message="Timetable slot deleted successfully")


def _day_of_week(on: date) -> int:
    # date.weekday() counts from Monday=0; slots count from Sunday=0
    return (on.weekday() + 1) % 7


async def _trainer_term_slots(
    db: AsyncSession,
    trainer_id: int,
    term_id: int,
    day_of_week: Optional[int] = None,
) -> List[TimetableSlot]:
    stmt = (
        _slot_query()
        .join(LessonPeriod, LessonPeriod.id == TimetableSlot.lesson_period_id)
        .where(
            TimetableSlot.employee_id == trainer_id,
            TimetableSlot.term_id == term_id,
            TimetableSlot.status != SlotStatus.CANCELLED.value,
        )
    )
    if day_of_week is not None:
        stmt = stmt.where(TimetableSlot.day_of_week == day_of_week)
    stmt = stmt.order_by(TimetableSlot.day_of_week, LessonPeriod.start_time, TimetableSlot.id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_trainer_day_schedule(
    db: AsyncSession,
    trainer_id: int,
    today: Optional[date] = None,
) -> TrainerDaySchedule:
    """Non-cancelled slots the trainer teaches today in the current term."""
    today = today or date.today()
    await _get_trainer(db, trainer_id)
    term = await terms_service.require_current_term(db, today)
    day_of_week = _day_of_week(today)
    slots = await _trainer_term_slots(db, trainer_id, term.id, day_of_week)
    return TrainerDaySchedule(
        trainer_id=trainer_id,
        term=NamedRef(id=term.id, name=term.name),
        calendar_date=today,
        day_of_week=day_of_week,
        day_name=day_name(day_of_week),
        slots=[_to_response(s) for s in slots],
    )


async def get_trainer_week_schedule(
    db: AsyncSession,
    trainer_id: int,
    today: Optional[date] = None,
) -> TrainerWeekSchedule:
    """The current term's weekly pattern for the trainer, laid over the calendar week (Sunday first)."""
    today = today or date.today()
    await _get_trainer(db, trainer_id)
    term = await terms_service.require_current_term(db, today)
    week_start = today - timedelta(days=_day_of_week(today))
    slots = await _trainer_term_slots(db, trainer_id, term.id)

    by_day: Dict[int, List[TimetableSlotResponse]] = {d: [] for d in range(7)}
    for slot in slots:
        by_day[slot.day_of_week].append(_to_response(slot))
    days = [
        DaySchedule(
            calendar_date=week_start + timedelta(days=d),
            day_of_week=d,
            day_name=day_name(d),
            slots=by_day[d],
        )
        for d in range(7)
    ]
    return TrainerWeekSchedule(
        trainer_id=trainer_id,
        term=NamedRef(id=term.id, name=term.name),
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        days=days,
        total_slots=len(slots),
    )
