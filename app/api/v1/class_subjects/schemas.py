from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OfferingCreate(BaseModel):
    subject_id: int
    term_id: int


class OfferingResponse(BaseModel):
    id: int
    class_id: int
    subject_id: int
    term_id: Optional[int] = None
    is_active: bool
    assigned_by: Optional[str] = None
    assigned_at: datetime
    class_name: Optional[str] = Field(None, description="Populated from the classes table")
    subject_name: Optional[str] = Field(None, description="Populated from the subjects table")

    class Config:
        from_attributes = True


class AvailableSubject(BaseModel):
    id: int
    name: str
    code: str
    department: str
    credit_hours: Optional[int] = None
    can_be_online: bool

    class Config:
        from_attributes = True


class OfferedSubject(BaseModel):
    """A subject as offered in one class/term, annotated for a trainer.

    is_assigned: the trainer's active assignment points at this offering.
    is_assigned_elsewhere: the trainer teaches the same subject this term under a different offering.
    """

    id: int = Field(..., description="Subject id")
    name: str
    code: str
    department: str
    credit_hours: Optional[int] = None
    can_be_online: bool
    class_subject_id: int
    term_id: Optional[int] = None
    is_active: bool
    is_assigned: bool = False
    is_assigned_elsewhere: bool = False


class OfferingRemoved(BaseModel):
    class_subject_id: int
    message: str
    deactivated_assignments: int = 0
