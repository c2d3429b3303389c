from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TimetableSettingsResponse(BaseModel):
    """Deadline fields are omitted (None) when no settings row has been written yet."""

    allow_admin_assignment: bool = False
    block_all_subject_selection: bool = False
    generation_deadline_enabled: Optional[bool] = None
    timetable_generation_deadline: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimetableSettingsUpdate(BaseModel):
    """Partial update: only supplied fields change."""

    allow_admin_assignment: Optional[bool] = None
    block_all_subject_selection: Optional[bool] = None
    generation_deadline_enabled: Optional[bool] = None
    timetable_generation_deadline: Optional[datetime] = Field(
        None, description="ISO-8601 timestamp; naive values are taken as UTC"
    )


class SelectionWindowResponse(BaseModel):
    is_open: bool
    reason: Optional[str] = None
    deadline: Optional[datetime] = None


class BlockTrainerRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BlockStatusResponse(BaseModel):
    user_id: int
    is_blocked: bool
    blocked_at: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    message: str


class TimetableAdminUpdate(BaseModel):
    has_timetable_admin: bool


class TimetableAdminStatusResponse(BaseModel):
    user_id: int
    name: str
    email: str
    has_timetable_admin: bool
    message: str
