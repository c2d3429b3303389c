from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate
from . import service

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    """Create a subject. Code is upper-cased and must be unique."""
    return await service.create_subject(db, payload)


@router.get("", response_model=List[SubjectResponse])
async def list_subjects(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[SubjectResponse]:
    return await service.list_subjects(db, active_only=not include_inactive)


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(
    subject_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SubjectResponse:
    return await service.get_subject(db, subject_id)


@router.put(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def update_subject(
    subject_id: int,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    return await service.update_subject(db, subject_id, payload)


@router.delete(
    "/{subject_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_subject(
    subject_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    return await service.delete_subject(db, subject_id)
