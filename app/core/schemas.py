from typing import Optional

from pydantic import BaseModel


class DeleteResponse(BaseModel):
    """Outcome of a delete on an entity with soft-delete semantics."""

    id: int
    message: str
    # True when the row was kept and only deactivated because other records reference it
    deactivated: bool = False
    references: Optional[int] = None
