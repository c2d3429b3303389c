import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.schemas import CurrentUser
from app.core.exceptions import ConflictError, NoCurrentTerm, NotFoundError, ValidationError
from app.core.models import ClassSubject, SchoolClass, Term, TermClass, TimetableSlot, TrainerSubjectAssignment
from app.core.schemas import DeleteResponse

from .schemas import (
    ClassSummary,
    TermClassAssignmentResponse,
    TermClassesRemoved,
    TermCreate,
    TermResponse,
    TermSummary,
    TermUpdate,
)

logger = logging.getLogger(__name__)


def _to_response(term: Term) -> TermResponse:
    return TermResponse(
        id=term.id,
        name=term.name,
        start_date=term.start_date,
        end_date=term.end_date,
        working_days=list(term.working_days or []),
        holidays=[date.fromisoformat(h) for h in (term.holidays or [])],
        is_active=term.is_active,
        created_at=term.created_at,
    )


def _term_class_to_response(tc: TermClass) -> TermClassAssignmentResponse:
    return TermClassAssignmentResponse(
        id=tc.id,
        term_id=tc.term_id,
        class_id=tc.class_id,
        assigned_by=tc.assigned_by,
        assigned_at=tc.assigned_at,
        term=TermSummary(
            id=tc.term.id,
            name=tc.term.name,
            is_active=tc.term.is_active,
            start_date=tc.term.start_date,
            end_date=tc.term.end_date,
        ),
        school_class=ClassSummary(id=tc.school_class.id, code=tc.school_class.code, name=tc.school_class.name),
    )


def _validate_dates(start_date: date, end_date: date, holidays: Iterable[date]) -> None:
    if end_date <= start_date:
        raise ValidationError("Start date must be before end date")
    outside = [h.isoformat() for h in holidays if h < start_date or h > end_date]
    if outside:
        raise ValidationError("Holidays must fall within the term dates", {"holidays": outside})


async def _find_overlapping_term(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    exclude_term_id: Optional[int] = None,
) -> Optional[Term]:
    stmt = select(Term).where(
        Term.is_active.is_(True),
        Term.start_date <= end_date,
        Term.end_date >= start_date,
    )
    if exclude_term_id is not None:
        stmt = stmt.where(Term.id != exclude_term_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


def _overlap_error(other: Term) -> ConflictError:
    return ConflictError(
        f"Term dates overlap with active term '{other.name}'",
        {"conflicting_term_id": other.id},
    )


async def get_term_or_404(db: AsyncSession, term_id: int) -> Term:
    term = await db.get(Term, term_id)
    if not term:
        raise NotFoundError("Term not found", {"term_id": term_id})
    return term


async def create_term(db: AsyncSession, payload: TermCreate) -> TermResponse:
    _validate_dates(payload.start_date, payload.end_date, payload.holidays)
    if payload.is_active:
        other = await _find_overlapping_term(db, payload.start_date, payload.end_date)
        if other:
            raise _overlap_error(other)
    term = Term(
        name=payload.name.strip(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        working_days=payload.working_days,
        holidays=sorted({h.isoformat() for h in payload.holidays}),
        is_active=payload.is_active,
    )
    db.add(term)
    await db.commit()
    await db.refresh(term)
    logger.info("Term %s '%s' created (%s to %s)", term.id, term.name, term.start_date, term.end_date)
    return _to_response(term)


async def list_terms(db: AsyncSession, include_inactive: bool = False) -> List[TermResponse]:
    stmt = select(Term)
    if not include_inactive:
        stmt = stmt.where(Term.is_active.is_(True))
    stmt = stmt.order_by(Term.is_active.desc(), Term.start_date.desc())
    result = await db.execute(stmt)
    return [_to_response(t) for t in result.scalars().all()]


async def get_term(db: AsyncSession, term_id: int) -> TermResponse:
    return _to_response(await get_term_or_404(db, term_id))


async def find_current_term(db: AsyncSession, today: Optional[date] = None) -> Optional[Term]:
    """The active term whose range contains today. Active ranges never overlap, so at most one."""
    today = today or date.today()
    result = await db.execute(
        select(Term)
        .where(
            Term.is_active.is_(True),
            Term.start_date <= today,
            Term.end_date >= today,
        )
        .order_by(Term.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def require_current_term(db: AsyncSession, today: Optional[date] = None) -> Term:
    term = await find_current_term(db, today)
    if term is None:
        raise NoCurrentTerm()
    return term


async def get_current_term(db: AsyncSession, today: Optional[date] = None) -> TermResponse:
    return _to_response(await require_current_term(db, today))


async def update_term(db: AsyncSession, term_id: int, payload: TermUpdate) -> TermResponse:
    term = await get_term_or_404(db, term_id)
    start_date = payload.start_date or term.start_date
    end_date = payload.end_date or term.end_date
    holidays = (
        payload.holidays
        if payload.holidays is not None
        else [date.fromisoformat(h) for h in (term.holidays or [])]
    )
    _validate_dates(start_date, end_date, holidays)
    is_active = payload.is_active if payload.is_active is not None else term.is_active
    if is_active:
        other = await _find_overlapping_term(db, start_date, end_date, exclude_term_id=term_id)
        if other:
            raise _overlap_error(other)
    if payload.name is not None:
        term.name = payload.name.strip()
    if payload.working_days is not None:
        term.working_days = payload.working_days
    term.start_date = start_date
    term.end_date = end_date
    term.holidays = sorted({h.isoformat() for h in holidays})
    term.is_active = is_active
    await db.commit()
    await db.refresh(term)
    return _to_response(term)


async def delete_term(db: AsyncSession, term_id: int) -> DeleteResponse:
    """A term referenced by slots, offerings or assignments is deactivated, never deleted."""
    term = await get_term_or_404(db, term_id)
    references = 0
    for model in (TimetableSlot, ClassSubject, TrainerSubjectAssignment):
        result = await db.execute(select(func.count(model.id)).where(model.term_id == term_id))
        references += result.scalar_one()
    if references:
        term.is_active = False
        await db.commit()
        logger.info("Term %s deactivated (%d references kept)", term_id, references)
        return DeleteResponse(
            id=term_id,
            message="Term is in use and has been deactivated",
            deactivated=True,
            references=references,
        )
    await db.delete(term)
    await db.commit()
    logger.info("Term %s deleted", term_id)
    return DeleteResponse(id=term_id, message="Term deleted successfully")


async def list_term_class_assignments(db: AsyncSession) -> List[TermClassAssignmentResponse]:
    result = await db.execute(
        select(TermClass)
        .options(selectinload(TermClass.term), selectinload(TermClass.school_class))
        .order_by(TermClass.term_id, TermClass.class_id)
    )
    return [_term_class_to_response(tc) for tc in result.scalars().all()]


async def list_term_classes(db: AsyncSession, term_id: int) -> List[TermClassAssignmentResponse]:
    await get_term_or_404(db, term_id)
    result = await db.execute(
        select(TermClass)
        .where(TermClass.term_id == term_id)
        .options(selectinload(TermClass.term), selectinload(TermClass.school_class))
        .order_by(TermClass.class_id)
        .execution_options(populate_existing=True)
    )
    return [_term_class_to_response(tc) for tc in result.scalars().all()]


async def set_term_classes(
    db: AsyncSession,
    term_id: int,
    class_ids: List[int],
    assigned_by: CurrentUser,
) -> List[TermClassAssignmentResponse]:
    """Replace the term's class set in one transaction."""
    await get_term_or_404(db, term_id)
    if len(set(class_ids)) != len(class_ids):
        raise ValidationError("Duplicate class IDs are not allowed", {"class_ids": class_ids})
    if class_ids:
        result = await db.execute(
            select(SchoolClass.id).where(SchoolClass.id.in_(class_ids), SchoolClass.is_active.is_(True))
        )
        found = set(result.scalars().all())
        invalid = [cid for cid in class_ids if cid not in found]
        if invalid:
            raise ValidationError(
                f"Invalid or inactive class IDs: {', '.join(str(i) for i in invalid)}",
                {"invalid_class_ids": invalid},
            )
    await db.execute(delete(TermClass).where(TermClass.term_id == term_id))
    for class_id in class_ids:
        db.add(TermClass(term_id=term_id, class_id=class_id, assigned_by=assigned_by.name))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Term classes were changed concurrently; retry", {"term_id": term_id})
    logger.info("Term %s classes set to %s by user %s", term_id, class_ids, assigned_by.id)
    return await list_term_classes(db, term_id)


async def remove_term_classes(
    db: AsyncSession,
    term_id: int,
    class_ids: Optional[List[int]] = None,
) -> TermClassesRemoved:
    await get_term_or_404(db, term_id)
    stmt = delete(TermClass).where(TermClass.term_id == term_id)
    if class_ids:
        stmt = stmt.where(TermClass.class_id.in_(class_ids))
    result = await db.execute(stmt)
    await db.commit()
    deleted = result.rowcount or 0
    return TermClassesRemoved(
        term_id=term_id,
        deleted_count=deleted,
        message=f"Removed {deleted} class(es) from term",
    )


async def is_class_in_term(db: AsyncSession, term_id: int, class_id: int) -> bool:
    result = await db.execute(
        select(TermClass.id).where(TermClass.term_id == term_id, TermClass.class_id == class_id).limit(1)
    )
    return result.scalar_one_or_none() is not None
