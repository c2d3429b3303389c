"""Readiness report for building a term's timetable.

Collects what slot placement depends on (classes in the term, offerings and the
trainers holding them, rooms, lesson periods) and lists what is missing.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.terms import service as terms_service
from app.core.models import (
    ClassSubject,
    LessonPeriod,
    Room,
    SchoolClass,
    Subject,
    TermClass,
    TimetableSlot,
    TrainerSubjectAssignment,
    User,
)

from .schemas import (
    LessonPeriodRef,
    NamedRef,
    PreflightClass,
    PreflightExistingTimetable,
    PreflightOffering,
    PreflightReport,
    PreflightRoom,
    PreflightTermInfo,
    PreflightTrainer,
)

logger = logging.getLogger(__name__)

# A term's timetable may only be rebuilt this many days after the term starts.
REGENERATION_WINDOW_DAYS = 14
MIN_RECOMMENDED_PERIODS = 4


async def _term_classes(db: AsyncSession, term_id: int) -> List[SchoolClass]:
    result = await db.execute(
        select(SchoolClass)
        .join(TermClass, TermClass.class_id == SchoolClass.id)
        .where(TermClass.term_id == term_id, SchoolClass.is_active.is_(True))
        .order_by(SchoolClass.name)
    )
    return list(result.scalars().all())


async def build_preflight_report(
    db: AsyncSession,
    term_id: int,
    today: Optional[date] = None,
) -> PreflightReport:
    term = await terms_service.get_term_or_404(db, term_id)
    today = today or date.today()
    days_since_start = (today - term.start_date).days
    can_regenerate = days_since_start <= REGENERATION_WINDOW_DAYS

    classes = await _term_classes(db, term_id)
    class_ids = [c.id for c in classes]

    offerings: List[PreflightOffering] = []
    if class_ids:
        rows = await db.execute(
            select(ClassSubject, SchoolClass, Subject)
            .join(SchoolClass, SchoolClass.id == ClassSubject.class_id)
            .join(Subject, Subject.id == ClassSubject.subject_id)
            .where(ClassSubject.term_id == term_id, ClassSubject.class_id.in_(class_ids))
            .order_by(SchoolClass.name, Subject.name)
        )
        offerings = [
            PreflightOffering(
                class_subject_id=cs.id,
                subject_id=subject.id,
                subject_name=subject.name,
                subject_code=subject.code,
                class_id=cl.id,
                class_name=cl.name,
                class_code=cl.code,
                credit_hours=subject.credit_hours,
            )
            for cs, cl, subject in rows.all()
        ]

    # class_subject_id -> holder; one trainer teaches a subject in one class per term
    holders: Dict[int, User] = {}
    trainers: Dict[int, PreflightTrainer] = {}
    by_offering = {o.class_subject_id: o for o in offerings}
    if by_offering:
        rows = await db.execute(
            select(TrainerSubjectAssignment, User)
            .join(User, User.id == TrainerSubjectAssignment.trainer_id)
            .where(
                TrainerSubjectAssignment.term_id == term_id,
                TrainerSubjectAssignment.is_active.is_(True),
                TrainerSubjectAssignment.class_subject_id.in_(list(by_offering)),
            )
            .order_by(User.name, TrainerSubjectAssignment.id)
        )
        for tsa, user in rows.all():
            holders.setdefault(tsa.class_subject_id, user)
            entry = trainers.get(user.id)
            if entry is None:
                entry = PreflightTrainer(
                    id=user.id, name=user.name, department=user.department, subjects_count=0, subject_codes=[]
                )
                trainers[user.id] = entry
            offering = by_offering[tsa.class_subject_id]
            entry.subjects_count += 1
            entry.subject_codes.append(f"{offering.subject_code} ({offering.class_code})")

    with_trainer = []
    without_trainer = []
    for offering in offerings:
        holder = holders.get(offering.class_subject_id)
        if holder is None:
            without_trainer.append(offering)
        else:
            with_trainer.append(offering.model_copy(update={"trainer": NamedRef(id=holder.id, name=holder.name)}))

    rooms = (
        await db.execute(select(Room).where(Room.is_active.is_(True)).order_by(Room.name))
    ).scalars().all()
    periods = (
        await db.execute(
            select(LessonPeriod).where(LessonPeriod.is_active.is_(True)).order_by(LessonPeriod.start_time)
        )
    ).scalars().all()
    slots_count = (
        await db.execute(select(func.count(TimetableSlot.id)).where(TimetableSlot.term_id == term_id))
    ).scalar_one()

    working_days = list(term.working_days or [])
    errors: List[str] = []
    warnings: List[str] = []
    if not classes:
        errors.append("No active classes assigned to this term")
    if not offerings:
        errors.append("No subjects assigned to classes for this term")
    if without_trainer:
        errors.append(f"{len(without_trainer)} subject(s) have no trainer assigned")
    if not rooms:
        errors.append("No active rooms available")
    if not periods:
        errors.append("No lesson periods configured")
    if offerings and not trainers:
        errors.append("No trainers have selected subjects for this term")
    if slots_count and not can_regenerate:
        errors.append(
            f"Cannot regenerate: term started {days_since_start} days ago "
            f"(limit is {REGENERATION_WINDOW_DAYS} days)"
        )

    if len(rooms) < len(trainers):
        warnings.append(f"Only {len(rooms)} room(s) for {len(trainers)} trainer(s)")
    if len(periods) < MIN_RECOMMENDED_PERIODS:
        warnings.append(f"Only {len(periods)} lesson period(s) configured")
    slots_per_week = len(working_days) * len(periods)
    for trainer in trainers.values():
        if trainer.subjects_count > slots_per_week:
            warnings.append(
                f"{trainer.name} has {trainer.subjects_count} subjects but only {slots_per_week} slots per week"
            )

    logger.info(
        "Preflight for term %s: %d error(s), %d warning(s)", term_id, len(errors), len(warnings)
    )
    return PreflightReport(
        passed=not errors,
        term_info=PreflightTermInfo(
            id=term.id,
            name=term.name,
            start_date=term.start_date,
            end_date=term.end_date,
            working_days=working_days,
            days_count=len(working_days),
        ),
        classes=[PreflightClass(id=c.id, name=c.name, code=c.code, department=c.department) for c in classes],
        offerings_with_trainer=with_trainer,
        offerings_without_trainer=without_trainer,
        trainers=list(trainers.values()),
        rooms=[PreflightRoom(id=r.id, name=r.name, capacity=r.capacity, room_type=r.room_type) for r in rooms],
        lesson_periods=[
            LessonPeriodRef(
                id=p.id,
                name=p.name,
                start_time=p.start_time,
                end_time=p.end_time,
                duration_minutes=p.duration_minutes,
            )
            for p in periods
        ],
        existing_timetable=PreflightExistingTimetable(
            exists=slots_count > 0,
            slots_count=slots_count,
            can_regenerate=can_regenerate,
            days_since_term_start=days_since_start,
        ),
        errors=errors,
        warnings=warnings,
    )
