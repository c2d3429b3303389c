from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50, description="Stored upper-cased; unique")
    department: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration_hours: int = Field(2, ge=1, le=24)


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    department: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_hours: Optional[int] = Field(None, ge=1, le=24)
    is_active: Optional[bool] = None


class ClassResponse(BaseModel):
    id: int
    code: str
    name: str
    department: str
    description: Optional[str] = None
    duration_hours: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
