from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_privileged, require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.db.session import get_db

from .schemas import AvailableSubject, OfferedSubject, OfferingCreate, OfferingRemoved, OfferingResponse
from . import service

router = APIRouter(prefix="/api/v1", tags=["class-subjects"])


@router.get("/classes/{class_id}/available-subjects", response_model=List[AvailableSubject])
async def list_available_subjects(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> List[AvailableSubject]:
    """Active subjects not yet offered in this class (any term)."""
    return await service.list_available_subjects(db, class_id)


@router.get("/classes/{class_id}/subjects", response_model=List[OfferedSubject])
async def list_offered_subjects(
    class_id: int,
    term_id: Optional[int] = Query(None),
    trainer_id: Optional[int] = Query(None, description="Defaults to the caller"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[OfferedSubject]:
    trainer_id = trainer_id if trainer_id is not None else current_user.id
    ensure_self_or_privileged(
        current_user, trainer_id, "Unauthorized. You can only view your own subject assignments."
    )
    return await service.list_offered_subjects(db, class_id, term_id=term_id, trainer_id=trainer_id)


@router.post(
    "/classes/{class_id}/subjects",
    response_model=OfferingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_offering(
    class_id: int,
    payload: OfferingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_scheduling_privilege),
) -> OfferingResponse:
    return await service.add_offering(db, class_id, payload, current_user)


@router.delete(
    "/class-subjects/{class_subject_id}",
    response_model=OfferingRemoved,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def remove_offering(
    class_subject_id: int,
    db: AsyncSession = Depends(get_db),
) -> OfferingRemoved:
    return await service.remove_offering(db, class_subject_id)
