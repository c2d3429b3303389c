import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.schemas import CurrentUser
from app.core.exceptions import ConflictError, NotFoundError
from app.core.models import ClassSubject, SchoolClass, Subject, Term, TrainerSubjectAssignment

from .schemas import AvailableSubject, OfferedSubject, OfferingCreate, OfferingRemoved, OfferingResponse

logger = logging.getLogger(__name__)

DUPLICATE_OFFERING_MESSAGE = "Subject already assigned to this class for this term"


def _to_response(cs: ClassSubject) -> OfferingResponse:
    return OfferingResponse(
        id=cs.id,
        class_id=cs.class_id,
        subject_id=cs.subject_id,
        term_id=cs.term_id,
        is_active=cs.is_active,
        assigned_by=cs.assigned_by,
        assigned_at=cs.assigned_at,
        class_name=cs.school_class.name if cs.school_class is not None else None,
        subject_name=cs.subject.name if cs.subject is not None else None,
    )


async def _require_class(db: AsyncSession, class_id: int) -> SchoolClass:
    cl = await db.get(SchoolClass, class_id)
    if not cl:
        raise NotFoundError("Class not found", {"class_id": class_id})
    return cl


async def get_offering(db: AsyncSession, class_subject_id: int) -> Optional[ClassSubject]:
    result = await db.execute(
        select(ClassSubject)
        .where(ClassSubject.id == class_subject_id)
        .options(selectinload(ClassSubject.school_class), selectinload(ClassSubject.subject))
    )
    return result.scalar_one_or_none()


async def find_offering(
    db: AsyncSession,
    class_id: int,
    subject_id: int,
    term_id: int,
) -> Optional[ClassSubject]:
    result = await db.execute(
        select(ClassSubject).where(
            ClassSubject.class_id == class_id,
            ClassSubject.subject_id == subject_id,
            ClassSubject.term_id == term_id,
        )
    )
    return result.scalar_one_or_none()


async def list_available_subjects(db: AsyncSession, class_id: int) -> List[AvailableSubject]:
    """Active subjects with no offering row for the class in any term."""
    await _require_class(db, class_id)
    linked = select(ClassSubject.subject_id).where(ClassSubject.class_id == class_id)
    result = await db.execute(
        select(Subject)
        .where(Subject.is_active.is_(True), Subject.id.not_in(linked))
        .order_by(Subject.name)
    )
    return [AvailableSubject.model_validate(s) for s in result.scalars().all()]


async def list_offered_subjects(
    db: AsyncSession,
    class_id: int,
    term_id: Optional[int] = None,
    trainer_id: Optional[int] = None,
) -> List[OfferedSubject]:
    await _require_class(db, class_id)
    stmt = (
        select(ClassSubject, Subject)
        .join(Subject, Subject.id == ClassSubject.subject_id)
        .where(ClassSubject.class_id == class_id)
    )
    if term_id is not None:
        stmt = stmt.where(ClassSubject.term_id == term_id)
    stmt = stmt.order_by(ClassSubject.is_active.desc(), Subject.name)
    rows = (await db.execute(stmt)).all()

    # (subject_id, term_id) -> class_subject_id of the trainer's active assignment
    held: Dict[Tuple[int, int], Optional[int]] = {}
    if trainer_id is not None:
        tsa_stmt = select(TrainerSubjectAssignment).where(
            TrainerSubjectAssignment.trainer_id == trainer_id,
            TrainerSubjectAssignment.is_active.is_(True),
        )
        if term_id is not None:
            tsa_stmt = tsa_stmt.where(TrainerSubjectAssignment.term_id == term_id)
        for tsa in (await db.execute(tsa_stmt)).scalars().all():
            held[(tsa.subject_id, tsa.term_id)] = tsa.class_subject_id

    offered = []
    for cs, subject in rows:
        key = (cs.subject_id, cs.term_id)
        holder = held.get(key)
        offered.append(
            OfferedSubject(
                id=subject.id,
                name=subject.name,
                code=subject.code,
                department=subject.department,
                credit_hours=subject.credit_hours,
                can_be_online=subject.can_be_online,
                class_subject_id=cs.id,
                term_id=cs.term_id,
                is_active=cs.is_active,
                is_assigned=key in held and holder == cs.id,
                is_assigned_elsewhere=key in held and holder != cs.id,
            )
        )
    return offered


async def add_offering(
    db: AsyncSession,
    class_id: int,
    payload: OfferingCreate,
    assigned_by: CurrentUser,
) -> OfferingResponse:
    """Offer a subject to a class for a term. New offerings start inactive."""
    await _require_class(db, class_id)
    if not await db.get(Subject, payload.subject_id):
        raise NotFoundError("Subject not found", {"subject_id": payload.subject_id})
    if not await db.get(Term, payload.term_id):
        raise NotFoundError("Term not found", {"term_id": payload.term_id})
    context = {"class_id": class_id, "subject_id": payload.subject_id, "term_id": payload.term_id}
    if await find_offering(db, class_id, payload.subject_id, payload.term_id):
        raise ConflictError(DUPLICATE_OFFERING_MESSAGE, context)
    cs = ClassSubject(
        class_id=class_id,
        subject_id=payload.subject_id,
        term_id=payload.term_id,
        is_active=False,
        assigned_by=assigned_by.name,
    )
    db.add(cs)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_OFFERING_MESSAGE, context)
    logger.info("Subject %s offered to class %s for term %s", payload.subject_id, class_id, payload.term_id)
    return _to_response(await get_offering(db, cs.id))


async def remove_offering(db: AsyncSession, class_subject_id: int) -> OfferingRemoved:
    """Deactivate dependent assignments, deactivate the offering, then delete it; one transaction.

    Assignment rows are kept as history but detached, so none points at the removed offering.
    """
    cs = await db.get(ClassSubject, class_subject_id)
    if not cs:
        raise NotFoundError("Class subject not found", {"class_subject_id": class_subject_id})
    result = await db.execute(
        update(TrainerSubjectAssignment)
        .where(
            TrainerSubjectAssignment.class_subject_id == class_subject_id,
            TrainerSubjectAssignment.is_active.is_(True),
        )
        .values(is_active=False)
    )
    deactivated = result.rowcount or 0
    if cs.is_active:
        cs.is_active = False
        await db.flush()
    await db.execute(
        update(TrainerSubjectAssignment)
        .where(TrainerSubjectAssignment.class_subject_id == class_subject_id)
        .values(class_subject_id=None)
    )
    await db.delete(cs)
    await db.commit()
    logger.info(
        "Offering %s removed (%d trainer assignments deactivated)", class_subject_id, deactivated
    )
    return OfferingRemoved(
        class_subject_id=class_subject_id,
        message="Subject removed successfully from class",
        deactivated_assignments=deactivated,
    )
