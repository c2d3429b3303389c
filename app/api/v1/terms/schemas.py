from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _check_working_days(v: Optional[List[int]]) -> Optional[List[int]]:
    if v is None:
        return v
    if any(d < 0 or d > 6 for d in v):
        raise ValueError("working_days must contain day numbers between 0 (Sunday) and 6 (Saturday)")
    return sorted(set(v))


class TermCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    start_date: date
    end_date: date
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    holidays: List[date] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: List[int]) -> List[int]:
        return _check_working_days(v)


class TermUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    working_days: Optional[List[int]] = None
    holidays: Optional[List[date]] = None
    is_active: Optional[bool] = None

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_working_days(v)


class TermResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    working_days: List[int]
    holidays: List[date]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TermSummary(BaseModel):
    id: int
    name: str
    is_active: bool
    start_date: date
    end_date: date


class ClassSummary(BaseModel):
    id: int
    code: str
    name: str


class TermClassAssignmentResponse(BaseModel):
    """Term↔class pair with denormalised names."""

    id: int
    term_id: int
    class_id: int
    assigned_by: Optional[str] = None
    assigned_at: datetime
    term: TermSummary
    school_class: ClassSummary = Field(..., serialization_alias="class")


class TermClassesSet(BaseModel):
    class_ids: List[int] = Field(default_factory=list)


class TermClassesRemove(BaseModel):
    class_ids: Optional[List[int]] = Field(None, description="Omit to remove every class from the term")


class TermClassesRemoved(BaseModel):
    term_id: int
    deleted_count: int
    message: str
