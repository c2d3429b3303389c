from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin, require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.db.session import get_db

from .schemas import (
    BlockStatusResponse,
    BlockTrainerRequest,
    SelectionWindowResponse,
    TimetableAdminStatusResponse,
    TimetableAdminUpdate,
    TimetableSettingsResponse,
    TimetableSettingsUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1", tags=["timetable-settings"])


@router.get(
    "/timetable-settings",
    response_model=TimetableSettingsResponse,
    response_model_exclude_none=True,
)
async def get_timetable_settings(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> TimetableSettingsResponse:
    """Current settings, or the documented defaults when none have been saved."""
    return await service.get_settings(db)


@router.put(
    "/timetable-settings",
    response_model=TimetableSettingsResponse,
    response_model_exclude_none=True,
)
async def update_timetable_settings(
    payload: TimetableSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> TimetableSettingsResponse:
    return await service.update_settings(db, payload, current_user)


@router.get("/timetable-settings/window", response_model=SelectionWindowResponse)
async def get_selection_window(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SelectionWindowResponse:
    """Whether the caller may still change their own selections."""
    return await service.get_selection_window(db, current_user)


@router.post("/trainers/{user_id}/block", response_model=BlockStatusResponse)
async def block_trainer(
    user_id: int,
    payload: BlockTrainerRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> BlockStatusResponse:
    return await service.set_trainer_blocked(db, user_id, True, current_user, reason=payload.reason)


@router.post("/trainers/{user_id}/unblock", response_model=BlockStatusResponse)
async def unblock_trainer(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> BlockStatusResponse:
    return await service.set_trainer_blocked(db, user_id, False, current_user)


@router.put("/users/{user_id}/timetable-admin", response_model=TimetableAdminStatusResponse)
async def set_timetable_admin(
    user_id: int,
    payload: TimetableAdminUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> TimetableAdminStatusResponse:
    return await service.set_timetable_admin(db, user_id, payload.has_timetable_admin, current_user)
