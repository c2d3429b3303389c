from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from app.core.enums import SlotStatus


class TimetableSlotCreate(BaseModel):
    term_id: int
    class_id: int
    subject_id: int
    employee_id: int = Field(..., description="Trainer (users.id)")
    room_id: int
    lesson_period_id: int
    day_of_week: int = Field(..., description="0=Sunday .. 6=Saturday")
    status: SlotStatus = SlotStatus.SCHEDULED
    is_online_session: bool = False


class TimetableSlotUpdate(BaseModel):
    term_id: Optional[int] = None
    class_id: Optional[int] = None
    subject_id: Optional[int] = None
    employee_id: Optional[int] = None
    room_id: Optional[int] = None
    lesson_period_id: Optional[int] = None
    day_of_week: Optional[int] = Field(None, description="0=Sunday .. 6=Saturday")
    status: Optional[SlotStatus] = None
    is_online_session: Optional[bool] = None


class TimetableSlotResponse(BaseModel):
    id: int
    term_id: int
    class_id: int
    subject_id: int
    employee_id: int
    room_id: int
    lesson_period_id: int
    day_of_week: int
    day_name: str
    status: str
    is_online_session: bool
    class_name: Optional[str] = None
    subject_name: Optional[str] = None
    trainer_name: Optional[str] = None
    room_name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    created_at: datetime

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: Optional[time]) -> Optional[str]:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return t.strftime("%H:%M") if t is not None else None


class NamedRef(BaseModel):
    id: int
    name: str


class CodedRef(BaseModel):
    id: int
    name: str
    code: str


class LessonPeriodRef(BaseModel):
    id: int
    name: str
    start_time: time
    end_time: time
    duration_minutes: int

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return t.strftime("%H:%M")


class SlotDetails(BaseModel):
    term_id: int
    term_name: str
    day_of_week: int
    day_name: str
    lesson_period: LessonPeriodRef


class SlotConflict(BaseModel):
    """The slot already occupying the resource, for a human-readable collision message."""

    timetable_slot_id: int
    subject: CodedRef
    school_class: CodedRef = Field(..., serialization_alias="class")
    room: NamedRef
    trainer: NamedRef
    message: str


class TrainerAvailabilityResponse(BaseModel):
    trainer: NamedRef
    slot_details: SlotDetails
    is_available: bool
    conflict: Optional[SlotConflict] = None


class RoomAvailabilityResponse(BaseModel):
    room: NamedRef
    slot_details: SlotDetails
    is_available: bool
    conflict: Optional[SlotConflict] = None


# ----- Readiness report -----


class PreflightTermInfo(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    working_days: List[int]
    days_count: int


class PreflightClass(BaseModel):
    id: int
    name: str
    code: str
    department: Optional[str] = None


class PreflightOffering(BaseModel):
    class_subject_id: int
    subject_id: int
    subject_name: str
    subject_code: str
    class_id: int
    class_name: str
    class_code: str
    credit_hours: Optional[int] = None
    trainer: Optional[NamedRef] = None


class PreflightTrainer(BaseModel):
    id: int
    name: str
    department: Optional[str] = None
    subjects_count: int
    subject_codes: List[str]


class PreflightRoom(BaseModel):
    id: int
    name: str
    capacity: Optional[int] = None
    room_type: str


class PreflightExistingTimetable(BaseModel):
    exists: bool
    slots_count: int
    can_regenerate: bool
    days_since_term_start: int


class PreflightReport(BaseModel):
    """Whether a term has everything a timetable needs; `errors` block generation, `warnings` do not."""

    passed: bool
    term_info: PreflightTermInfo
    classes: List[PreflightClass]
    offerings_with_trainer: List[PreflightOffering]
    offerings_without_trainer: List[PreflightOffering]
    trainers: List[PreflightTrainer]
    rooms: List[PreflightRoom]
    lesson_periods: List[LessonPeriodRef]
    existing_timetable: PreflightExistingTimetable
    errors: List[str]
    warnings: List[str]


# ----- Trainer schedule views -----


class DaySchedule(BaseModel):
    calendar_date: date
    day_of_week: int
    day_name: str
    slots: List[TimetableSlotResponse]


class TrainerDaySchedule(DaySchedule):
    trainer_id: int
    term: NamedRef


class TrainerWeekSchedule(BaseModel):
    trainer_id: int
    term: NamedRef
    week_start: date
    week_end: date
    days: List[DaySchedule]
    total_slots: int
