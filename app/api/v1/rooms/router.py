from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_scheduling_privilege
from app.auth.schemas import CurrentUser
from app.core.enums import RoomType
from app.core.schemas import DeleteResponse
from app.db.session import get_db

from .schemas import RoomCreate, RoomResponse, RoomUpdate
from . import service

router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


@router.post(
    "",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def create_room(
    payload: RoomCreate,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    """Create a room. Names are unique regardless of case."""
    return await service.create_room(db, payload)


@router.get("", response_model=List[RoomResponse])
async def list_rooms(
    room_type: Optional[RoomType] = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RoomResponse]:
    return await service.list_rooms(
        db,
        active_only=not include_inactive,
        room_type=room_type.value if room_type else None,
    )


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> RoomResponse:
    return await service.get_room(db, room_id)


@router.put(
    "/{room_id}",
    response_model=RoomResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def update_room(
    room_id: int,
    payload: RoomUpdate,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    return await service.update_room(db, room_id, payload)


@router.delete(
    "/{room_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_scheduling_privilege)],
)
async def delete_room(
    room_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    return await service.delete_room(db, room_id)
