from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_privileged
from app.auth.schemas import CurrentUser
from app.db.session import get_db

from .schemas import (
    ClassAssignmentOut,
    ClassAssignmentRemoved,
    ClassAssignmentsSet,
    SubjectAssignmentDetail,
    SubjectAssignmentRequest,
    SubjectAssignmentResult,
)
from . import service

router = APIRouter(prefix="/api/v1/trainers", tags=["trainer-assignments"])


@router.get("/{trainer_id}/assignments", response_model=List[ClassAssignmentOut])
async def list_class_assignments(
    trainer_id: int,
    term_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassAssignmentOut]:
    ensure_self_or_privileged(
        current_user, trainer_id, "Unauthorized. You do not have permission to view these assignments."
    )
    return await service.list_class_assignments(db, trainer_id, term_id=term_id)


@router.put("/{trainer_id}/assignments", response_model=List[ClassAssignmentOut])
async def set_class_assignments(
    trainer_id: int,
    payload: ClassAssignmentsSet,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassAssignmentOut]:
    """Replace the trainer's active class assignments with `class_ids`."""
    return await service.set_class_assignments(db, trainer_id, payload, current_user)


@router.delete("/{trainer_id}/assignments/{class_id}", response_model=ClassAssignmentRemoved)
async def remove_class_assignment(
    trainer_id: int,
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassAssignmentRemoved:
    return await service.remove_class_assignment(db, trainer_id, class_id, current_user)


@router.get("/{trainer_id}/subject-assignments", response_model=List[SubjectAssignmentDetail])
async def list_subject_assignments(
    trainer_id: int,
    term_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[SubjectAssignmentDetail]:
    ensure_self_or_privileged(
        current_user, trainer_id, "Unauthorized. You do not have permission to view these subject assignments."
    )
    return await service.list_subject_assignments(db, trainer_id, term_id=term_id)


@router.post("/{trainer_id}/subject-assignments", response_model=SubjectAssignmentResult)
async def set_subject_assignment(
    trainer_id: int,
    payload: SubjectAssignmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SubjectAssignmentResult:
    """Activate or deactivate the trainer for one subject offering.

    action is `created`, `updated`, or `none` when there was nothing to deactivate.
    """
    return await service.set_subject_assignment(db, trainer_id, payload, current_user)
