from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import ClassCreate, ClassResponse, ClassUpdate
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    return await service.create_class(db, payload)


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassResponse]:
    return await service.list_classes(db, active_only=not include_inactive)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    return await service.get_class(db, class_id)


@router.put(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def update_class(
    class_id: int,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    return await service.update_class(db, class_id, payload)


@router.post(
    "/{class_id}/toggle-status",
    response_model=ClassResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def toggle_class_status(
    class_id: int,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    return await service.toggle_class_status(db, class_id)


@router.delete(
    "/{class_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    """Deletes an unreferenced class; a class with history is deactivated instead."""
    return await service.delete_class(db, class_id)
