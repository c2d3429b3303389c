from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import LessonPeriodCreate, LessonPeriodResponse, LessonPeriodUpdate
from . import service

router = APIRouter(prefix="/api/v1/lesson-periods", tags=["lesson-periods"])


@router.post(
    "",
    response_model=LessonPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_lesson_period(
    payload: LessonPeriodCreate,
    db: AsyncSession = Depends(get_db),
) -> LessonPeriodResponse:
    """Create a period. Active periods may not overlap."""
    return await service.create_lesson_period(db, payload)


@router.get("", response_model=List[LessonPeriodResponse])
async def list_lesson_periods(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LessonPeriodResponse]:
    return await service.list_lesson_periods(db, active_only=not include_inactive)


@router.get("/{period_id}", response_model=LessonPeriodResponse)
async def get_lesson_period(
    period_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LessonPeriodResponse:
    return await service.get_lesson_period(db, period_id)


@router.put(
    "/{period_id}",
    response_model=LessonPeriodResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def update_lesson_period(
    period_id: int,
    payload: LessonPeriodUpdate,
    db: AsyncSession = Depends(get_db),
) -> LessonPeriodResponse:
    return await service.update_lesson_period(db, period_id, payload)


@router.delete(
    "/{period_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_lesson_period(
    period_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    """Periods referenced by timetable slots are deactivated instead of deleted."""
    return await service.delete_lesson_period(db, period_id)
