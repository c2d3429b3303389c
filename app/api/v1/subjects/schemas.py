from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    department: str = Field(..., min_length=1, max_length=255)
    credit_hours: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    can_be_online: bool = True


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    department: Optional[str] = Field(None, min_length=1, max_length=255)
    credit_hours: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    can_be_online: Optional[bool] = None
    is_active: Optional[bool] = None


class SubjectResponse(BaseModel):
    id: int
    name: str
    code: str
    department: str
    credit_hours: Optional[int] = None
    description: Optional[str] = None
    can_be_online: bool
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
