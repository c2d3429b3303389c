from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import RoomType


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=0)
    room_type: RoomType = RoomType.CLASSROOM
    equipment: List[str] = Field(default_factory=list)
    department: Optional[str] = Field(None, max_length=255)


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=0)
    room_type: Optional[RoomType] = None
    equipment: Optional[List[str]] = None
    department: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class RoomResponse(BaseModel):
    id: int
    name: str
    capacity: Optional[int] = None
    room_type: str
    equipment: List[str] = Field(default_factory=list)
    department: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
