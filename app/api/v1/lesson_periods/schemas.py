from datetime import datetime, time
from typing import Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator


def _parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str):
        v = v.strip()
        if len(v) == 5:  # HH:MM
            return datetime.strptime(v, "%H:%M").time()
        return datetime.strptime(v, "%H:%M:%S").time()
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 09:00, 09:45) or time")


class LessonPeriodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:45")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return _parse_time_24(v)


class LessonPeriodUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 09:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 09:45")
    is_active: Optional[bool] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return _parse_time_24(v)


class LessonPeriodResponse(BaseModel):
    id: int
    name: str
    start_time: time
    end_time: time
    duration_minutes: int
    is_active: bool

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return t.strftime("%H:%M")
