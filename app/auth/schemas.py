from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller as seen by the scheduling services.

    Identity comes from the access token; role and capability flags are re-read
    from the users table on every request so revocations take effect immediately.
    """

    id: int
    name: str
    email: str
    role: str  # admin | employee
    department: Optional[str] = None
    has_timetable_admin: bool = False
    is_blocked: bool = False

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
