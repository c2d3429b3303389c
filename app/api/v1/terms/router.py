from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import (
    TermClassAssignmentResponse,
    TermClassesRemove,
    TermClassesRemoved,
    TermClassesSet,
    TermCreate,
    TermResponse,
    TermUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/terms", tags=["terms"])


@router.get("/current", response_model=TermResponse)
async def get_current_term(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    """Active term containing today; 404 when there is none."""
    return await service.get_current_term(db)


@router.get(
    "/class-assignments",
    response_model=List[TermClassAssignmentResponse],
    response_model_by_alias=True,
)
async def list_term_class_assignments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TermClassAssignmentResponse]:
    return await service.list_term_class_assignments(db)


@router.post(
    "",
    response_model=TermResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_term(
    payload: TermCreate,
    db: AsyncSession = Depends(get_db),
) -> TermResponse:
    return await service.create_term(db, payload)


@router.get("", response_model=List[TermResponse])
async def list_terms(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TermResponse]:
    return await service.list_terms(db, include_inactive=include_inactive)


@router.get("/{term_id}", response_model=TermResponse)
async def get_term(
    term_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TermResponse:
    return await service.get_term(db, term_id)


@router.put(
    "/{term_id}",
    response_model=TermResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def update_term(
    term_id: int,
    payload: TermUpdate,
    db: AsyncSession = Depends(get_db),
) -> TermResponse:
    return await service.update_term(db, term_id, payload)


@router.delete(
    "/{term_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_term(
    term_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    return await service.delete_term(db, term_id)


@router.get(
    "/{term_id}/classes",
    response_model=List[TermClassAssignmentResponse],
    response_model_by_alias=True,
)
async def list_term_classes(
    term_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TermClassAssignmentResponse]:
    return await service.list_term_classes(db, term_id)


@router.put(
    "/{term_id}/classes",
    response_model=List[TermClassAssignmentResponse],
    response_model_by_alias=True,
)
async def set_term_classes(
    term_id: int,
    payload: TermClassesSet,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> List[TermClassAssignmentResponse]:
    """Replace the set of classes taught in the term."""
    return await service.set_term_classes(db, term_id, payload.class_ids, current_user)


@router.delete(
    "/{term_id}/classes",
    response_model=TermClassesRemoved,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def remove_term_classes(
    term_id: int,
    payload: Optional[TermClassesRemove] = Body(None),
    db: AsyncSession = Depends(get_db),
) -> TermClassesRemoved:
    class_ids = payload.class_ids if payload else None
    return await service.remove_term_classes(db, term_id, class_ids)
