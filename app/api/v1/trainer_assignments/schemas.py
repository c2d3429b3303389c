from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import AssignmentAction


class SubjectAssignmentRequest(BaseModel):
    term_id: int
    class_subject_id: int
    subject_id: int
    is_active: bool


class SubjectAssignmentOut(BaseModel):
    id: int
    trainer_id: int
    subject_id: int
    term_id: int
    class_subject_id: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True


class SubjectAssignmentResult(BaseModel):
    action: AssignmentAction
    message: str
    assignment: Optional[SubjectAssignmentOut] = None


class SubjectAssignmentDetail(SubjectAssignmentOut):
    subject_name: str
    subject_code: str
    class_id: Optional[int] = None
    class_name: Optional[str] = None


class ClassAssignmentsSet(BaseModel):
    term_id: int
    class_ids: List[int] = Field(default_factory=list)


class ClassAssignmentOut(BaseModel):
    id: int
    trainer_id: int
    class_id: int
    term_id: Optional[int] = None
    class_name: str
    class_code: str
    assigned_at: datetime


class RemovedClass(BaseModel):
    id: int
    name: str
    code: str


class ClassAssignmentRemoved(BaseModel):
    message: str
    removed_class: RemovedClass
    attendance_records_preserved: int
    note: Optional[str] = None
