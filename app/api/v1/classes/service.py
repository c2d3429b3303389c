import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.models import (
    ClassAttendance,
    ClassSubject,
    SchoolClass,
    TermClass,
    TimetableSlot,
    TrainerClassAssignment,
)
from app.core.schemas import DeleteResponse

from .schemas import ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse.model_validate(c)


async def _code_taken(db: AsyncSession, code: str, exclude_class_id: Optional[int] = None) -> bool:
    stmt = select(SchoolClass.id).where(SchoolClass.code == code)
    if exclude_class_id is not None:
        stmt = stmt.where(SchoolClass.id != exclude_class_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def get_class_or_404(db: AsyncSession, class_id: int) -> SchoolClass:
    obj = await db.get(SchoolClass, class_id)
    if not obj:
        raise NotFoundError("Class not found", {"class_id": class_id})
    return obj


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    code = payload.code.strip().upper()
    if await _code_taken(db, code):
        raise ConflictError(f"Class code '{code}' already exists", {"code": code})
    obj = SchoolClass(
        name=payload.name.strip(),
        code=code,
        department=payload.department.strip(),
        description=payload.description,
        duration_hours=payload.duration_hours,
        is_active=True,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Class code '{code}' already exists", {"code": code})
    await db.refresh(obj)
    logger.info("Class %s (%s) created", obj.id, obj.code)
    return _class_to_response(obj)


async def list_classes(db: AsyncSession, active_only: bool = True) -> List[ClassResponse]:
    stmt = select(SchoolClass)
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.name)
    result = await db.execute(stmt)
    return [_class_to_response(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, class_id: int) -> ClassResponse:
    return _class_to_response(await get_class_or_404(db, class_id))


async def update_class(db: AsyncSession, class_id: int, payload: ClassUpdate) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    if payload.code is not None:
        code = payload.code.strip().upper()
        if await _code_taken(db, code, exclude_class_id=class_id):
            raise ConflictError(f"Class code '{code}' already exists", {"code": code})
        obj.code = code
    if payload.name is not None:
        obj.name = payload.name.strip()
    if payload.department is not None:
        obj.department = payload.department.strip()
    if payload.description is not None:
        obj.description = payload.description
    if payload.duration_hours is not None:
        obj.duration_hours = payload.duration_hours
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Class code '{obj.code}' already exists", {"code": obj.code})
    await db.refresh(obj)
    return _class_to_response(obj)


async def toggle_class_status(db: AsyncSession, class_id: int) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    obj.is_active = not obj.is_active
    await db.commit()
    await db.refresh(obj)
    logger.info("Class %s %s", obj.id, "activated" if obj.is_active else "deactivated")
    return _class_to_response(obj)


async def _count_class_references(db: AsyncSession, class_id: int) -> int:
    total = 0
    for model in (ClassSubject, TermClass, TrainerClassAssignment, TimetableSlot, ClassAttendance):
        result = await db.execute(select(func.count(model.id)).where(model.class_id == class_id))
        total += result.scalar_one()
    return total


async def delete_class(db: AsyncSession, class_id: int) -> DeleteResponse:
    """Hard delete only when nothing has ever referenced the class; otherwise deactivate."""
    obj = await get_class_or_404(db, class_id)
    references = await _count_class_references(db, class_id)
    if references:
        obj.is_active = False
        await db.commit()
        logger.info("Class %s deactivated (%d references kept)", class_id, references)
        return DeleteResponse(
            id=class_id,
            message="Class is in use and has been deactivated",
            deactivated=True,
            references=references,
        )
    await db.delete(obj)
    await db.commit()
    logger.info("Class %s deleted", class_id)
    return DeleteResponse(id=class_id, message="Class deleted successfully")
