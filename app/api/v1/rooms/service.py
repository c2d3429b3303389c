import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.models import Room, TimetableSlot
from app.core.schemas import DeleteResponse

from .schemas import RoomCreate, RoomResponse, RoomUpdate

logger = logging.getLogger(__name__)

DUPLICATE_NAME_MESSAGE = "A room with this name already exists"


def _to_response(room: Room) -> RoomResponse:
    return RoomResponse.model_validate(room)


async def _name_taken(db: AsyncSession, name: str, exclude_room_id: Optional[int] = None) -> bool:
    """Case-insensitive, matching the lower(name) unique index."""
    stmt = select(Room.id).where(func.lower(Room.name) == name.lower())
    if exclude_room_id is not None:
        stmt = stmt.where(Room.id != exclude_room_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def get_room_or_404(db: AsyncSession, room_id: int) -> Room:
    room = await db.get(Room, room_id)
    if not room:
        raise NotFoundError("Room not found", {"room_id": room_id})
    return room


async def create_room(db: AsyncSession, payload: RoomCreate) -> RoomResponse:
    name = payload.name.strip()
    if await _name_taken(db, name):
        raise ConflictError(DUPLICATE_NAME_MESSAGE, {"name": name})
    room = Room(
        name=name,
        capacity=payload.capacity,
        room_type=payload.room_type.value,
        equipment=payload.equipment,
        department=payload.department,
        is_active=True,
    )
    db.add(room)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_NAME_MESSAGE, {"name": name})
    await db.refresh(room)
    logger.info("Room %s (%s) created", room.id, room.name)
    return _to_response(room)


async def list_rooms(
    db: AsyncSession,
    active_only: bool = True,
    room_type: Optional[str] = None,
) -> List[RoomResponse]:
    stmt = select(Room)
    if active_only:
        stmt = stmt.where(Room.is_active.is_(True))
    if room_type:
        stmt = stmt.where(Room.room_type == room_type)
    stmt = stmt.order_by(Room.name)
    result = await db.execute(stmt)
    return [_to_response(r) for r in result.scalars().all()]


async def get_room(db: AsyncSession, room_id: int) -> RoomResponse:
    return _to_response(await get_room_or_404(db, room_id))


async def update_room(db: AsyncSession, room_id: int, payload: RoomUpdate) -> RoomResponse:
    room = await get_room_or_404(db, room_id)
    if payload.name is not None:
        name = payload.name.strip()
        if await _name_taken(db, name, exclude_room_id=room_id):
            raise ConflictError(DUPLICATE_NAME_MESSAGE, {"name": name})
        room.name = name
    if payload.capacity is not None:
        room.capacity = payload.capacity
    if payload.room_type is not None:
        room.room_type = payload.room_type.value
    if payload.equipment is not None:
        room.equipment = payload.equipment
    if payload.department is not None:
        room.department = payload.department
    if payload.is_active is not None:
        room.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_NAME_MESSAGE, {"name": payload.name})
    await db.refresh(room)
    return _to_response(room)


async def delete_room(db: AsyncSession, room_id: int) -> DeleteResponse:
    """Rooms used by any timetable slot are deactivated; unused rooms are deleted."""
    room = await get_room_or_404(db, room_id)
    result = await db.execute(select(func.count(TimetableSlot.id)).where(TimetableSlot.room_id == room_id))
    used = result.scalar_one()
    if used:
        room.is_active = False
        await db.commit()
        logger.info("Room %s deactivated (used by %d slots)", room_id, used)
        return DeleteResponse(
            id=room_id,
            message="Room is used in the timetable and has been deactivated",
            deactivated=True,
            references=used,
        )
    await db.delete(room)
    await db.commit()
    logger.info("Room %s deleted", room_id)
    return DeleteResponse(id=room_id, message="Room deleted successfully")
