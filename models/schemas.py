from pydantic import BaseModel
from typing import List, Optional

from models.session import Session


class CourtSessionsResponse(BaseModel):
    court: str
    full_name: str
    last_update: int
    sessions: List[Session]


class PassResponse(BaseModel):
    court: str
    status: str  # skipped | acknowledged | fetch_failed | unchanged | updated
    added: int = 0
    removed: int = 0
    unchanged: int = 0
    notifications: int = 0
    last_update: Optional[int] = None
