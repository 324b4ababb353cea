# models/session.py
import json
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

SESSION_FIELDS = ("date", "time", "type", "lawsuit", "hall", "reference", "note")


class Session(BaseModel):
    """One scheduled hearing of a court. Identity is the full field tuple."""
    model_config = ConfigDict(frozen=True)

    date: str  # ISO YYYY-MM-DD
    time: str = ""
    type: str = ""
    lawsuit: str = ""
    hall: str = ""
    reference: str = ""
    note: str = ""

    def as_tuple(self) -> Tuple[str, ...]:
        return tuple(getattr(self, f) for f in SESSION_FIELDS)

    def key(self) -> str:
        """Canonical serialization used for structural comparison."""
        return json.dumps(self.as_tuple(), ensure_ascii=False, separators=(",", ":"))


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    subscription_id: int
    chat_id: int
    court: str
    name: str
    date_filter: str = "*"
    reference_filter: str = ""
    confirmation_sent: bool = False


class CourtMeta(BaseModel):
    name: str
    full_name: Optional[str] = None
    last_update: int  # unix timestamp

    @property
    def display_name(self) -> str:
        return self.full_name or self.name


class CourtListing(BaseModel):
    """What the fetch collaborator returns for one court."""
    full_name: Optional[str] = None
    sessions: List[Session] = []
