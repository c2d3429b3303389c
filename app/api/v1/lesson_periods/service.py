import logging
from datetime import time
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import LessonPeriod, TimetableSlot
from app.core.schemas import DeleteResponse

from .schemas import LessonPeriodCreate, LessonPeriodResponse, LessonPeriodUpdate

logger = logging.getLogger(__name__)


def _to_response(p: LessonPeriod) -> LessonPeriodResponse:
    return LessonPeriodResponse.model_validate(p)


def duration_minutes(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def _validate_times(start: time, end: time) -> None:
    if start >= end:
        raise ValidationError(
            "Start time must be before end time",
            {"start_time": start.strftime("%H:%M"), "end_time": end.strftime("%H:%M")},
        )


async def find_overlapping_period(
    db: AsyncSession,
    start: time,
    end: time,
    exclude_period_id: Optional[int] = None,
) -> Optional[LessonPeriod]:
    """First active period whose [start, end) intersects the given range."""
    stmt = select(LessonPeriod).where(
        LessonPeriod.is_active.is_(True),
        LessonPeriod.start_time < end,
        LessonPeriod.end_time > start,
    )
    if exclude_period_id is not None:
        stmt = stmt.where(LessonPeriod.id != exclude_period_id)
    result = await db.execute(stmt.order_by(LessonPeriod.start_time).limit(1))
    return result.scalar_one_or_none()


def _overlap_error(other: LessonPeriod) -> ConflictError:
    return ConflictError(
        f"Lesson period overlaps with '{other.name}' "
        f"({other.start_time.strftime('%H:%M')}-{other.end_time.strftime('%H:%M')})",
        {"conflicting_period_id": other.id},
    )


async def get_period_or_404(db: AsyncSession, period_id: int) -> LessonPeriod:
    period = await db.get(LessonPeriod, period_id)
    if not period:
        raise NotFoundError("Lesson period not found", {"lesson_period_id": period_id})
    return period


async def create_lesson_period(db: AsyncSession, payload: LessonPeriodCreate) -> LessonPeriodResponse:
    _validate_times(payload.start_time, payload.end_time)
    other = await find_overlapping_period(db, payload.start_time, payload.end_time)
    if other:
        raise _overlap_error(other)
    period = LessonPeriod(
        name=payload.name.strip(),
        start_time=payload.start_time,
        end_time=payload.end_time,
        duration_minutes=duration_minutes(payload.start_time, payload.end_time),
        is_active=True,
    )
    db.add(period)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Lesson period overlaps with an existing active period")
    await db.refresh(period)
    logger.info("Lesson period %s created (%s-%s)", period.id, period.start_time, period.end_time)
    return _to_response(period)


async def list_lesson_periods(db: AsyncSession, active_only: bool = True) -> List[LessonPeriodResponse]:
    stmt = select(LessonPeriod)
    if active_only:
        stmt = stmt.where(LessonPeriod.is_active.is_(True))
    stmt = stmt.order_by(LessonPeriod.start_time)
    result = await db.execute(stmt)
    return [_to_response(p) for p in result.scalars().all()]


async def get_lesson_period(db: AsyncSession, period_id: int) -> LessonPeriodResponse:
    return _to_response(await get_period_or_404(db, period_id))


async def update_lesson_period(
    db: AsyncSession,
    period_id: int,
    payload: LessonPeriodUpdate,
) -> LessonPeriodResponse:
    period = await get_period_or_404(db, period_id)
    start = payload.start_time if payload.start_time is not None else period.start_time
    end = payload.end_time if payload.end_time is not None else period.end_time
    _validate_times(start, end)
    becomes_active = payload.is_active if payload.is_active is not None else period.is_active
    if becomes_active:
        other = await find_overlapping_period(db, start, end, exclude_period_id=period_id)
        if other:
            raise _overlap_error(other)
    if payload.name is not None:
        period.name = payload.name.strip()
    period.start_time = start
    period.end_time = end
    period.duration_minutes = duration_minutes(start, end)
    period.is_active = becomes_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Lesson period overlaps with an existing active period")
    await db.refresh(period)
    return _to_response(period)


async def delete_lesson_period(db: AsyncSession, period_id: int) -> DeleteResponse:
    period = await get_period_or_404(db, period_id)
    result = await db.execute(
        select(func.count(TimetableSlot.id)).where(TimetableSlot.lesson_period_id == period_id)
    )
    used = result.scalar_one()
    if used:
        period.is_active = False
        await db.commit()
        logger.info("Lesson period %s deactivated (used by %d slots)", period_id, used)
        return DeleteResponse(
            id=period_id,
            message="Lesson period is used in the timetable and has been deactivated",
            deactivated=True,
            references=used,
        )
    await db.delete(period)
    await db.commit()
    logger.info("Lesson period %s deleted", period_id)
    return DeleteResponse(id=period_id, message="Lesson period deleted successfully")
