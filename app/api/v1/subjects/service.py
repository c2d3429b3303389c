import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.models import ClassSubject, Subject, TimetableSlot, TrainerSubjectAssignment
from app.core.schemas import DeleteResponse

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate

logger = logging.getLogger(__name__)


def _to_response(s: Subject) -> SubjectResponse:
    return SubjectResponse.model_validate(s)


def _normalize_code(code: str) -> str:
    return code.strip().upper()


def _conflict(existing: Subject, code: str) -> ConflictError:
    return ConflictError(
        f"Subject code '{code}' already exists (existing: name='{existing.name}', id={existing.id})",
        {"code": code, "existing_subject_id": existing.id},
    )


async def _find_by_code(
    db: AsyncSession,
    code: str,
    exclude_subject_id: Optional[int] = None,
) -> Optional[Subject]:
    stmt = select(Subject).where(Subject.code == code)
    if exclude_subject_id is not None:
        stmt = stmt.where(Subject.id != exclude_subject_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_subject_or_404(db: AsyncSession, subject_id: int) -> Subject:
    obj = await db.get(Subject, subject_id)
    if not obj:
        raise NotFoundError("Subject not found", {"subject_id": subject_id})
    return obj


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    code = _normalize_code(payload.code)
    existing = await _find_by_code(db, code)
    if existing:
        raise _conflict(existing, code)
    obj = Subject(
        name=payload.name.strip(),
        code=code,
        department=payload.department.strip(),
        credit_hours=payload.credit_hours,
        description=payload.description,
        can_be_online=payload.can_be_online,
        is_active=True,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # Lost a race with a concurrent create
        conflict = await _find_by_code(db, code)
        if conflict:
            raise _conflict(conflict, code)
        raise ConflictError(f"Subject code '{code}' already exists", {"code": code})
    await db.refresh(obj)
    logger.info("Subject %s (%s) created", obj.id, obj.code)
    return _to_response(obj)


async def list_subjects(db: AsyncSession, active_only: bool = True) -> List[SubjectResponse]:
    stmt = select(Subject)
    if active_only:
        stmt = stmt.where(Subject.is_active.is_(True))
    stmt = stmt.order_by(Subject.name)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def get_subject(db: AsyncSession, subject_id: int) -> SubjectResponse:
    return _to_response(await get_subject_or_404(db, subject_id))


async def update_subject(db: AsyncSession, subject_id: int, payload: SubjectUpdate) -> SubjectResponse:
    obj = await get_subject_or_404(db, subject_id)
    if payload.code is not None:
        code = _normalize_code(payload.code)
        existing = await _find_by_code(db, code, exclude_subject_id=subject_id)
        if existing:
            raise _conflict(existing, code)
        obj.code = code
    if payload.name is not None:
        obj.name = payload.name.strip()
    if payload.department is not None:
        obj.department = payload.department.strip()
    if payload.credit_hours is not None:
        obj.credit_hours = payload.credit_hours
    if payload.description is not None:
        obj.description = payload.description
    if payload.can_be_online is not None:
        obj.can_be_online = payload.can_be_online
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Subject code '{obj.code}' already exists", {"code": obj.code})
    await db.refresh(obj)
    return _to_response(obj)


async def delete_subject(db: AsyncSession, subject_id: int) -> DeleteResponse:
    obj = await get_subject_or_404(db, subject_id)
    references = 0
    for model in (ClassSubject, TrainerSubjectAssignment, TimetableSlot):
        result = await db.execute(select(func.count(model.id)).where(model.subject_id == subject_id))
        references += result.scalar_one()
    if references:
        obj.is_active = False
        await db.commit()
        logger.info("Subject %s deactivated (%d references kept)", subject_id, references)
        return DeleteResponse(
            id=subject_id,
            message="Subject is in use and has been deactivated",
            deactivated=True,
            references=references,
        )
    await db.delete(obj)
    await db.commit()
    logger.info("Subject %s deleted", subject_id)
    return DeleteResponse(id=subject_id, message="Subject deleted successfully")
