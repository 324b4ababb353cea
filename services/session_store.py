"""
Per-court session storage and diffing.

Purpose:
- Compare a freshly fetched listing with the stored one (added / removed / unchanged)
- Read the stored listing of a court, optionally filtered

Sessions are compared structurally on all fields through Session.key(); a
session whose hall or note changed shows up as one removed plus one added
entry, so it triggers matching again. Replacing the stored listing is part of
the atomic per-court commit in services/court_registry.py.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.db_models import sessions_table
from models.session import SESSION_FIELDS, Session
from services.filter_matcher import session_filter

logger = logging.getLogger(__name__)


@dataclass
class SessionDiff:
    added: List[Session] = field(default_factory=list)
    removed: List[Session] = field(default_factory=list)
    unchanged: List[Session] = field(default_factory=list)
    # the new listing in fetch order, duplicates collapsed
    current: List[Session] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def _unique(sessions: Iterable[Session]) -> dict:
    # dicts keep insertion order, duplicates within one listing collapse
    result = {}
    for s in sessions:
        result.setdefault(s.key(), s)
    return result


def diff_sessions(old: Sequence[Session], new: Sequence[Session]) -> SessionDiff:
    old_by_key = _unique(old)
    new_by_key = _unique(new)

    diff = SessionDiff(current=list(new_by_key.values()))
    for key, session in new_by_key.items():
        if key in old_by_key:
            diff.unchanged.append(session)
        else:
            diff.added.append(session)
    for key, session in old_by_key.items():
        if key not in new_by_key:
            diff.removed.append(session)
    return diff


class SessionStore:
    """Read access to the sessions table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, court: str) -> List[Session]:
        """Stored sessions of a court, ordered by date and time."""
        columns = [sessions_table.c[f] for f in SESSION_FIELDS]
        stmt = (
            select(*columns)
            .where(sessions_table.c.court == court)
            .order_by(sessions_table.c.date, sessions_table.c.time)
        )
        result = await self.session.execute(stmt)
        return [Session(**row._mapping) for row in result]

    async def query(
        self,
        court: str,
        date_filter: str = "*",
        reference_filter: str = "",
    ) -> List[Session]:
        """
        Stored sessions matching the given filters (same syntax as subscriptions).
        Raises FilterError for malformed filters so callers can report them.
        """
        predicate = session_filter(date_filter, reference_filter)
        return [s for s in await self.load(court) if predicate(s)]

    async def diff(self, court: str, fetched: Sequence[Session], stored: Optional[Sequence[Session]] = None) -> SessionDiff:
        if stored is None:
            stored = await self.load(court)
        result = diff_sessions(stored, fetched)
        logger.debug(
            "%s: diff added=%d removed=%d unchanged=%d",
            court, len(result.added), len(result.removed), len(result.unchanged),
        )
        return result
