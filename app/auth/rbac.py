from fastapi import Depends

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import PermissionDeniedError


def has_scheduling_privilege(user: CurrentUser) -> bool:
    """Admins and holders of the timetable-admin capability may manage any trainer's schedule."""
    return user.role == UserRole.ADMIN.value or bool(user.has_timetable_admin)


def ensure_self_or_privileged(user: CurrentUser, trainer_id: int, message: str) -> None:
    if user.id != trainer_id and not has_scheduling_privilege(user):
        raise PermissionDeniedError(message, {"trainer_id": trainer_id})


async def require_scheduling_privilege(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: admin role or timetable-admin capability."""
    if not has_scheduling_privilege(current_user):
        raise PermissionDeniedError("Insufficient permissions")
    return current_user


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: admin role only; the timetable-admin capability is not enough."""
    if current_user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Admin access required")
    return current_user
