import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import has_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.core.models import SETTINGS_ROW_ID, TimetableSettings, User

from .schemas import (
    BlockStatusResponse,
    SelectionWindowResponse,
    TimetableAdminStatusResponse,
    TimetableSettingsResponse,
    TimetableSettingsUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = TimetableSettingsResponse(allow_admin_assignment=False, block_all_subject_selection=False)

DEADLINE_PASSED_MESSAGE = "The timetable selection deadline has passed."

# target -> (global block message, individual block message)
_GATE_MESSAGES = {
    "subjects": (
        "Subject selection is currently disabled by administrator.",
        "Your account is blocked from selecting subjects.",
    ),
    "classes": (
        "Class selection is currently disabled by administrator.",
        "Your account is blocked from selecting classes.",
    ),
    "timetable": (
        "Timetable changes are currently disabled by administrator.",
        "Your account is blocked from changing the timetable.",
    ),
}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def get_settings_record(db: AsyncSession) -> Optional[TimetableSettings]:
    return await db.get(TimetableSettings, SETTINGS_ROW_ID)


async def get_settings(db: AsyncSession) -> TimetableSettingsResponse:
    record = await get_settings_record(db)
    if record is None:
        return DEFAULT_SETTINGS.model_copy()
    return TimetableSettingsResponse.model_validate(record)


async def update_settings(
    db: AsyncSession,
    payload: TimetableSettingsUpdate,
    updated_by: CurrentUser,
) -> TimetableSettingsResponse:
    """Upsert the singleton row; fields absent from the payload keep their value."""
    changes = payload.model_dump(exclude_unset=True)
    if "timetable_generation_deadline" in changes and changes["timetable_generation_deadline"] is not None:
        changes["timetable_generation_deadline"] = _as_utc(changes["timetable_generation_deadline"])

    record = await get_settings_record(db)
    if record is None:
        record = TimetableSettings(
            id=SETTINGS_ROW_ID,
            allow_admin_assignment=False,
            block_all_subject_selection=False,
            generation_deadline_enabled=False,
            timetable_generation_deadline=None,
        )
        db.add(record)
    for field, value in changes.items():
        if value is None and field != "timetable_generation_deadline":
            continue
        setattr(record, field, value)
    record.updated_at = datetime.now(timezone.utc)

    if record.generation_deadline_enabled and record.timetable_generation_deadline is None:
        await db.rollback()
        raise ValidationError("timetable_generation_deadline is required when the deadline is enabled")

    await db.commit()
    await db.refresh(record)
    logger.info("Timetable settings updated by user %s: %s", updated_by.id, sorted(changes))
    return TimetableSettingsResponse.model_validate(record)


def _deadline_passed(record: Optional[TimetableSettings], now: datetime) -> bool:
    if record is None or not record.generation_deadline_enabled:
        return False
    if record.timetable_generation_deadline is None:
        return False
    return now >= _as_utc(record.timetable_generation_deadline)


def _closed_reason(
    record: Optional[TimetableSettings],
    caller: CurrentUser,
    target: str,
    now: datetime,
) -> Optional[str]:
    """Checked in order: global block, individual block, generation deadline."""
    if has_scheduling_privilege(caller):
        return None
    globally_blocked, individually_blocked = _GATE_MESSAGES[target]
    if record is not None and record.block_all_subject_selection:
        return globally_blocked
    if caller.is_blocked:
        return individually_blocked
    if _deadline_passed(record, now):
        return DEADLINE_PASSED_MESSAGE
    return None


async def get_selection_window(
    db: AsyncSession,
    caller: CurrentUser,
    now: Optional[datetime] = None,
) -> SelectionWindowResponse:
    """Whether `caller` may change their own class/subject selections right now."""
    record = await get_settings_record(db)
    deadline = None
    if record is not None and record.generation_deadline_enabled:
        deadline = record.timetable_generation_deadline
    reason = _closed_reason(record, caller, "subjects", now or datetime.now(timezone.utc))
    return SelectionWindowResponse(is_open=reason is None, reason=reason, deadline=deadline)


async def ensure_selection_open(
    db: AsyncSession,
    caller: CurrentUser,
    target: str = "subjects",
    now: Optional[datetime] = None,
) -> None:
    """Raise PermissionDeniedError when a non-privileged caller may not mutate selections.

    `target` is "subjects", "classes" or "timetable" and only affects the message.
    """
    if has_scheduling_privilege(caller):
        return
    record = await get_settings_record(db)
    reason = _closed_reason(record, caller, target, now or datetime.now(timezone.utc))
    if reason is not None:
        raise PermissionDeniedError(reason, {"trainer_id": caller.id})


async def set_trainer_blocked(
    db: AsyncSession,
    user_id: int,
    blocked: bool,
    acting_user: CurrentUser,
    reason: Optional[str] = None,
) -> BlockStatusResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", {"user_id": user_id})
    if blocked and user.role == UserRole.ADMIN.value:
        raise ValidationError("Cannot block admin users", {"user_id": user_id})

    if bool(user.is_blocked) == blocked:
        message = "User is already blocked" if blocked else "User is not blocked"
        return BlockStatusResponse(
            user_id=user.id,
            is_blocked=bool(user.is_blocked),
            blocked_at=user.blocked_at,
            blocked_reason=user.blocked_reason,
            message=message,
        )

    if blocked:
        user.is_blocked = True
        user.blocked_at = datetime.now(timezone.utc)
        user.blocked_reason = reason
        user.blocked_by = acting_user.id
        message = "User blocked successfully"
    else:
        user.is_blocked = False
        user.blocked_at = None
        user.blocked_reason = None
        user.blocked_by = None
        message = "User unblocked successfully"
    await db.commit()
    await db.refresh(user)
    logger.info("User %s %s by %s", user.id, "blocked" if blocked else "unblocked", acting_user.id)
    return BlockStatusResponse(
        user_id=user.id,
        is_blocked=user.is_blocked,
        blocked_at=user.blocked_at,
        blocked_reason=user.blocked_reason,
        message=message,
    )


async def set_timetable_admin(
    db: AsyncSession,
    user_id: int,
    granted: bool,
    acting_user: CurrentUser,
) -> TimetableAdminStatusResponse:
    """Grant or revoke the timetable-admin capability. Takes effect on the user's next request."""
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", {"user_id": user_id})
    if bool(user.has_timetable_admin) != granted:
        user.has_timetable_admin = granted
        await db.commit()
        await db.refresh(user)
        logger.info(
            "Timetable admin %s for user %s by %s", "granted" if granted else "revoked", user.id, acting_user.id
        )
    return TimetableAdminStatusResponse(
        user_id=user.id,
        name=user.name,
        email=user.email,
        has_timetable_admin=user.has_timetable_admin,
        message=f"Timetable admin privileges {'granted' if granted else 'revoked'} successfully",
    )
