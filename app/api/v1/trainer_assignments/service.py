"""Trainer class and subject assignments.

Subject assignments hold at most one row per (trainer, subject, term). The row is
updated in place: toggled, or re-pointed at another offering when the trainer
switches class. Activating a subject the trainer already holds under a different
offering in the same term is rejected.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.timetable_settings.service import ensure_selection_open
from app.auth.rbac import ensure_self_or_privileged
from app.auth.schemas import CurrentUser
from app.core.enums import TRAINER_ROLES, AssignmentAction
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import (
    ClassAttendance,
    ClassSubject,
    SchoolClass,
    Term,
    TrainerClassAssignment,
    TrainerSubjectAssignment,
    User,
)

from .schemas import (
    ClassAssignmentOut,
    ClassAssignmentRemoved,
    ClassAssignmentsSet,
    RemovedClass,
    SubjectAssignmentDetail,
    SubjectAssignmentOut,
    SubjectAssignmentRequest,
    SubjectAssignmentResult,
)

logger = logging.getLogger(__name__)

ATTENDANCE_PRESERVED_NOTE = "Previous attendance records have been preserved for reporting purposes."


async def get_active_trainer(db: AsyncSession, trainer_id: int) -> User:
    trainer = await db.get(User, trainer_id)
    if not trainer or not trainer.is_active:
        raise NotFoundError("Trainer not found or inactive", {"trainer_id": trainer_id})
    if trainer.role not in TRAINER_ROLES:
        raise ValidationError("Only employees can be given class or subject assignments", {"trainer_id": trainer_id})
    return trainer


async def _load_offering(db: AsyncSession, class_subject_id: int) -> Optional[ClassSubject]:
    result = await db.execute(
        select(ClassSubject)
        .where(ClassSubject.id == class_subject_id)
        .options(selectinload(ClassSubject.school_class))
    )
    return result.scalar_one_or_none()


async def _current_subject_assignment(
    db: AsyncSession,
    trainer_id: int,
    subject_id: int,
    term_id: int,
) -> Optional[TrainerSubjectAssignment]:
    # Locks the (trainer, subject, term) row on PostgreSQL; concurrent writers for the key serialise here.
    result = await db.execute(
        select(TrainerSubjectAssignment)
        .where(
            TrainerSubjectAssignment.trainer_id == trainer_id,
            TrainerSubjectAssignment.subject_id == subject_id,
            TrainerSubjectAssignment.term_id == term_id,
        )
        .order_by(TrainerSubjectAssignment.id.desc())
        .limit(1)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def set_subject_assignment(
    db: AsyncSession,
    trainer_id: int,
    payload: SubjectAssignmentRequest,
    caller: CurrentUser,
) -> SubjectAssignmentResult:
    offering = await _load_offering(db, payload.class_subject_id)
    if not offering:
        raise NotFoundError("Class subject not found", {"class_subject_id": payload.class_subject_id})
    if offering.term_id != payload.term_id:
        raise ValidationError(
            "Term mismatch for class subject",
            {"class_subject_id": offering.id, "expected_term_id": offering.term_id, "term_id": payload.term_id},
        )
    if offering.subject_id != payload.subject_id:
        raise ValidationError(
            "Subject mismatch for class subject",
            {
                "class_subject_id": offering.id,
                "expected_subject_id": offering.subject_id,
                "subject_id": payload.subject_id,
            },
        )

    ensure_self_or_privileged(
        caller, trainer_id, "Unauthorized. You do not have permission to update these subject assignments."
    )
    await ensure_selection_open(db, caller, "subjects")
    await get_active_trainer(db, trainer_id)

    existing = await _current_subject_assignment(db, trainer_id, payload.subject_id, payload.term_id)

    if existing is None:
        if not payload.is_active:
            return SubjectAssignmentResult(action=AssignmentAction.NONE, message="No assignment to deactivate")
        tsa = TrainerSubjectAssignment(
            trainer_id=trainer_id,
            subject_id=payload.subject_id,
            term_id=payload.term_id,
            class_subject_id=offering.id,
            is_active=True,
        )
        db.add(tsa)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                "This subject assignment was changed by another request; reload and try again",
                {"trainer_id": trainer_id, "subject_id": payload.subject_id, "term_id": payload.term_id},
            )
        await db.refresh(tsa)
        logger.info(
            "Trainer %s assigned subject %s in offering %s (term %s)",
            trainer_id, payload.subject_id, offering.id, payload.term_id,
        )
        return SubjectAssignmentResult(
            action=AssignmentAction.CREATED,
            message="Subject assignment created and activated",
            assignment=SubjectAssignmentOut.model_validate(tsa),
        )

    if (
        payload.is_active
        and existing.class_subject_id is not None
        and existing.class_subject_id != offering.id
    ):
        holder = await _load_offering(db, existing.class_subject_id)
        class_name = holder.school_class.name if holder and holder.school_class else "another class"
        logger.warning(
            "Trainer %s rejected for subject %s in offering %s: already held in offering %s",
            trainer_id, payload.subject_id, offering.id, existing.class_subject_id,
        )
        raise ConflictError(
            f"You are already assigned to this subject in {class_name} for this term. "
            "A subject can only be taught once per term.",
            {
                "class_subject_id": existing.class_subject_id,
                "class_id": holder.class_id if holder else None,
                "class_name": class_name,
            },
        )

    # Same offering: toggle. Different offering with a deactivate request: class switch.
    switched = existing.class_subject_id != offering.id
    existing.class_subject_id = offering.id
    existing.is_active = payload.is_active
    await db.commit()
    await db.refresh(existing)
    logger.info(
        "Trainer %s subject %s assignment %s%s",
        trainer_id, payload.subject_id,
        "activated" if payload.is_active else "deactivated",
        f" (moved to offering {offering.id})" if switched else "",
    )
    return SubjectAssignmentResult(
        action=AssignmentAction.UPDATED,
        message="Subject activated" if payload.is_active else "Subject deactivated",
        assignment=SubjectAssignmentOut.model_validate(existing),
    )


async def list_subject_assignments(
    db: AsyncSession,
    trainer_id: int,
    term_id: Optional[int] = None,
) -> List[SubjectAssignmentDetail]:
    stmt = (
        select(TrainerSubjectAssignment)
        .where(
            TrainerSubjectAssignment.trainer_id == trainer_id,
            TrainerSubjectAssignment.is_active.is_(True),
        )
        .options(
            selectinload(TrainerSubjectAssignment.subject),
            selectinload(TrainerSubjectAssignment.class_subject).selectinload(ClassSubject.school_class),
        )
    )
    if term_id is not None:
        stmt = stmt.where(TrainerSubjectAssignment.term_id == term_id)
    result = await db.execute(stmt.order_by(TrainerSubjectAssignment.id))
    details = []
    for tsa in result.scalars().all():
        school_class = tsa.class_subject.school_class if tsa.class_subject else None
        details.append(
            SubjectAssignmentDetail(
                id=tsa.id,
                trainer_id=tsa.trainer_id,
                subject_id=tsa.subject_id,
                term_id=tsa.term_id,
                class_subject_id=tsa.class_subject_id,
                is_active=tsa.is_active,
                subject_name=tsa.subject.name,
                subject_code=tsa.subject.code,
                class_id=school_class.id if school_class else None,
                class_name=school_class.name if school_class else None,
            )
        )
    return details


def _class_assignment_out(tca: TrainerClassAssignment) -> ClassAssignmentOut:
    return ClassAssignmentOut(
        id=tca.id,
        trainer_id=tca.trainer_id,
        class_id=tca.class_id,
        term_id=tca.term_id,
        class_name=tca.school_class.name,
        class_code=tca.school_class.code,
        assigned_at=tca.assigned_at,
    )


async def list_class_assignments(
    db: AsyncSession,
    trainer_id: int,
    term_id: Optional[int] = None,
) -> List[ClassAssignmentOut]:
    stmt = (
        select(TrainerClassAssignment)
        .where(
            TrainerClassAssignment.trainer_id == trainer_id,
            TrainerClassAssignment.is_active.is_(True),
        )
        .options(selectinload(TrainerClassAssignment.school_class))
        .execution_options(populate_existing=True)
    )
    if term_id is not None:
        stmt = stmt.where(TrainerClassAssignment.term_id == term_id)
    result = await db.execute(stmt.order_by(TrainerClassAssignment.assigned_at.desc(), TrainerClassAssignment.id))
    return [_class_assignment_out(tca) for tca in result.scalars().all()]


async def set_class_assignments(
    db: AsyncSession,
    trainer_id: int,
    payload: ClassAssignmentsSet,
    caller: CurrentUser,
) -> List[ClassAssignmentOut]:
    """Replace the trainer's active class set. Existing rows are reactivated, never duplicated."""
    ensure_self_or_privileged(
        caller, trainer_id, "Unauthorized. You do not have permission to update these assignments."
    )
    await ensure_selection_open(db, caller, "classes")
    await get_active_trainer(db, trainer_id)
    if not await db.get(Term, payload.term_id):
        raise NotFoundError("Term not found", {"term_id": payload.term_id})

    class_ids = payload.class_ids
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

    await db.execute(
        update(TrainerClassAssignment)
        .where(
            TrainerClassAssignment.trainer_id == trainer_id,
            TrainerClassAssignment.is_active.is_(True),
        )
        .values(is_active=False)
    )
    for class_id in class_ids:
        result = await db.execute(
            select(TrainerClassAssignment)
            .where(
                TrainerClassAssignment.trainer_id == trainer_id,
                TrainerClassAssignment.class_id == class_id,
            )
            .order_by(TrainerClassAssignment.id.desc())
            .limit(1)
        )
        tca = result.scalar_one_or_none()
        if tca is not None:
            tca.is_active = True
            tca.term_id = payload.term_id
            tca.assigned_by = caller.name
        else:
            db.add(
                TrainerClassAssignment(
                    trainer_id=trainer_id,
                    class_id=class_id,
                    term_id=payload.term_id,
                    is_active=True,
                    assigned_by=caller.name,
                )
            )
    await db.commit()
    logger.info("Trainer %s class assignments set to %s (term %s)", trainer_id, class_ids, payload.term_id)
    return await list_class_assignments(db, trainer_id)


async def remove_class_assignment(
    db: AsyncSession,
    trainer_id: int,
    class_id: int,
    caller: CurrentUser,
) -> ClassAssignmentRemoved:
    """Soft-deactivate the trainer's active assignment to a class; attendance history is kept."""
    ensure_self_or_privileged(caller, trainer_id, "Unauthorized. You can only remove your own assignments.")

    result = await db.execute(
        select(TrainerClassAssignment)
        .where(
            TrainerClassAssignment.trainer_id == trainer_id,
            TrainerClassAssignment.class_id == class_id,
            TrainerClassAssignment.is_active.is_(True),
        )
        .options(selectinload(TrainerClassAssignment.school_class))
        .limit(1)
    )
    tca = result.scalar_one_or_none()
    if tca is None:
        raise NotFoundError(
            "Assignment not found or already removed", {"trainer_id": trainer_id, "class_id": class_id}
        )

    count_result = await db.execute(
        select(func.count(ClassAttendance.id)).where(
            ClassAttendance.trainer_id == trainer_id,
            ClassAttendance.class_id == class_id,
        )
    )
    preserved = count_result.scalar_one()

    school_class = tca.school_class
    tca.is_active = False
    await db.commit()
    logger.info(
        "Trainer %s removed from class %s (%d attendance records preserved)", trainer_id, class_id, preserved
    )
    return ClassAssignmentRemoved(
        message=f'Successfully removed assignment from class "{school_class.name}"',
        removed_class=RemovedClass(id=school_class.id, name=school_class.name, code=school_class.code),
        attendance_records_preserved=preserved,
        note=ATTENDANCE_PRESERVED_NOTE if preserved > 0 else None,
    )
