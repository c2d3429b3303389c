from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_privileged, require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import (
    PreflightReport,
    RoomAvailabilityResponse,
    TimetableSlotCreate,
    TimetableSlotResponse,
    TimetableSlotUpdate,
    TrainerAvailabilityResponse,
    TrainerDaySchedule,
    TrainerWeekSchedule,
)
from . import preflight, service

router = APIRouter(prefix="/api/v1", tags=["timetable"])


# ----- Availability -----


@router.get("/trainers/{trainer_id}/availability", response_model=TrainerAvailabilityResponse)
async def check_trainer_availability(
    trainer_id: int,
    term_id: int = Query(...),
    day_of_week: int = Query(..., description="0=Sunday .. 6=Saturday"),
    lesson_period_id: int = Query(...),
    exclude_slot_id: Optional[int] = Query(None, description="Slot being edited; ignored as a conflict"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TrainerAvailabilityResponse:
    ensure_self_or_privileged(
        current_user, trainer_id, "Unauthorized. You can only check your own availability."
    )
    return await service.check_trainer_availability(
        db, trainer_id, term_id, day_of_week, lesson_period_id, exclude_slot_id=exclude_slot_id
    )


@router.get("/rooms/{room_id}/availability", response_model=RoomAvailabilityResponse)
async def check_room_availability(
    room_id: int,
    term_id: int = Query(...),
    day_of_week: int = Query(..., description="0=Sunday .. 6=Saturday"),
    lesson_period_id: int = Query(...),
    exclude_slot_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RoomAvailabilityResponse:
    return await service.check_room_availability(
        db, room_id, term_id, day_of_week, lesson_period_id, exclude_slot_id=exclude_slot_id
    )


# ----- Readiness and trainer schedules -----


@router.get(
    "/timetable/pre-flight",
    response_model=PreflightReport,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def get_preflight_report(
    term_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> PreflightReport:
    """What a term still lacks before its timetable can be built."""
    return await preflight.build_preflight_report(db, term_id)


@router.get("/timetable/trainers/{trainer_id}/today", response_model=TrainerDaySchedule)
async def get_trainer_today(
    trainer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TrainerDaySchedule:
    ensure_self_or_privileged(current_user, trainer_id, "Unauthorized. You can only view your own schedule.")
    return await service.get_trainer_day_schedule(db, trainer_id)


@router.get("/timetable/trainers/{trainer_id}/week", response_model=TrainerWeekSchedule)
async def get_trainer_week(
    trainer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TrainerWeekSchedule:
    ensure_self_or_privileged(current_user, trainer_id, "Unauthorized. You can only view your own schedule.")
    return await service.get_trainer_week_schedule(db, trainer_id)


# ----- Slots -----


@router.post(
    "/timetable",
    response_model=TimetableSlotResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_slot(
    payload: TimetableSlotCreate,
    db: AsyncSession = Depends(get_db),
) -> TimetableSlotResponse:
    """Place a lesson. Trainer and room must both be free at (term, day, period)."""
    return await service.create_slot(db, payload)


@router.get("/timetable", response_model=List[TimetableSlotResponse])
async def list_slots(
    term_id: Optional[int] = Query(None),
    employee_id: Optional[int] = Query(None),
    class_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    room_id: Optional[int] = Query(None),
    day_of_week: Optional[int] = Query(None),
    is_online_session: Optional[bool] = Query(None),
    include_cancelled: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TimetableSlotResponse]:
    return await service.list_slots(
        db,
        current_user,
        term_id=term_id,
        employee_id=employee_id,
        class_id=class_id,
        subject_id=subject_id,
        room_id=room_id,
        day_of_week=day_of_week,
        is_online_session=is_online_session,
        include_cancelled=include_cancelled,
    )


@router.get("/timetable/{slot_id}", response_model=TimetableSlotResponse)
async def get_slot(
    slot_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TimetableSlotResponse:
    return await service.get_slot(db, slot_id, current_user)


@router.put("/timetable/{slot_id}", response_model=TimetableSlotResponse)
async def update_slot(
    slot_id: int,
    payload: TimetableSlotUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TimetableSlotResponse:
    return await service.update_slot(db, slot_id, payload, current_user)


@router.post(
    "/timetable/{slot_id}/cancel",
    response_model=TimetableSlotResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def cancel_slot(
    slot_id: int,
    db: AsyncSession = Depends(get_db),
) -> TimetableSlotResponse:
    return await service.cancel_slot(db, slot_id)


@router.delete(
    "/timetable/{slot_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_slot(
    slot_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    """Slots with attendance are cancelled rather than deleted."""
    return await service.delete_slot(db, slot_id)
