"""
Dispatch Engine: one fetch -> diff -> match -> notify -> commit pass per court.

Pass steps:
1. Read the court's meta. If the listing is not out of date (and the pass is
   not forced) only pending acknowledgments are sent, against the stored listing.
2. Fetch the listing (with timeout). Fetch errors leave every bit of state untouched.
3. Diff against the stored listing; snapshot the court's subscriptions.
4. Every added session x every confirmed subscription -> one task per match.
5. Every subscription with confirmation_sent = 0 -> one acknowledgment task
   listing the court's current sessions matching it. Its added sessions are
   part of that list, so it gets no separate match tasks in the same pass.
6. Commit atomically: sessions (if changed), last_update, confirmation flags.
7. Hand the tasks to the delivery collaborator (non-blocking enqueue).

Tasks are handed over only after the commit succeeded. The enqueue itself
cannot fail, so a failed commit never leaves already-queued duplicates behind;
a crash between commit and delivery can only lose notifications.

A pass must not run concurrently with another pass for the same court; the
CourtScheduler (workers/court_scheduler.py) takes care of that.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from core.exceptions import FetchError
from models.notification import SESSION_MATCHED, SUBSCRIPTION_CONFIRMED, NotificationTask
from models.session import CourtMeta, Session, Subscription
from services import filter_matcher
from services.court_fetcher import CourtFetcher
from services.court_registry import CourtRegistry, is_out_of_date
from services.notification_service import NotificationService
from services.session_store import SessionDiff, SessionStore
from services.subscription_db_service import SubscriptionDBService
from services.subscription_index import SubscriptionIndex

logger = logging.getLogger(__name__)

SKIPPED = "skipped"
ACKNOWLEDGED = "acknowledged"
FETCH_FAILED = "fetch_failed"
UNCHANGED = "unchanged"
UPDATED = "updated"


@dataclass
class PassResult:
    court: str
    status: str
    diff: SessionDiff = field(default_factory=SessionDiff)
    tasks: List[NotificationTask] = field(default_factory=list)
    meta: Optional[CourtMeta] = None


def build_acknowledgments(
    court: str,
    court_name: str,
    subscriptions: Sequence[Subscription],
    current_sessions: Sequence[Session],
) -> Tuple[List[NotificationTask], List[int]]:
    """One acknowledgment per pending subscription, plus the ids being confirmed."""
    acks: List[NotificationTask] = []
    confirmed_ids: List[int] = []
    for sub in subscriptions:
        if sub.confirmation_sent:
            continue
        current = tuple(s for s in current_sessions if filter_matcher.matches(sub, s, court))
        acks.append(NotificationTask(SUBSCRIPTION_CONFIRMED, sub, court_name, sessions=current))
        confirmed_ids.append(sub.subscription_id)
    return acks, confirmed_ids


def build_tasks(
    court: str,
    court_name: str,
    diff: SessionDiff,
    subscriptions: Sequence[Subscription],
    current_sessions: Sequence[Session],
) -> Tuple[List[NotificationTask], List[int]]:
    """
    Steps 4 and 5 of a pass. Returns the tasks (acknowledgments first) and the
    ids of the subscriptions whose confirmation is being sent.
    """
    acks, confirmed_ids = build_acknowledgments(court, court_name, subscriptions, current_sessions)

    matched: List[NotificationTask] = []
    for sub in subscriptions:
        if not sub.confirmation_sent:
            continue
        for session in diff.added:
            if filter_matcher.matches(sub, session, court):
                matched.append(NotificationTask(SESSION_MATCHED, sub, court_name, session=session))

    return acks + matched, confirmed_ids


class DispatchEngine:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        fetcher: CourtFetcher,
        notifications: NotificationService,
        index: Optional[SubscriptionIndex] = None,
        clock: Optional[Callable[[], datetime]] = None,
        fetch_timeout: Optional[float] = None,
    ):
        self.session_maker = session_maker
        self.fetcher = fetcher
        self.notifications = notifications
        self.index = index or SubscriptionIndex()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.fetch_timeout = settings.FETCH_TIMEOUT_SEC if fetch_timeout is None else fetch_timeout

    async def get_meta(self, court: str) -> Optional[CourtMeta]:
        async with self.session_maker() as db:
            return await CourtRegistry(db).get_meta(court)

    async def _snapshot(self, db: AsyncSession, court: str) -> List[Subscription]:
        await self.index.refresh(court, SubscriptionDBService(db).list_active)
        return self.index.subscriptions_for(court)

    async def acknowledge_pending(self, court: str, meta: CourtMeta) -> PassResult:
        """Confirm subscriptions created since the last refresh, without fetching."""
        async with self.session_maker() as db:
            subscriptions = await self._snapshot(db, court)
            if all(sub.confirmation_sent for sub in subscriptions):
                logger.debug("%s: Already up to date", court)
                return PassResult(court, SKIPPED, meta=meta)

            stored = await SessionStore(db).load(court)
            tasks, confirmed_ids = build_acknowledgments(court, meta.display_name, subscriptions, stored)
            new_meta = await CourtRegistry(db).commit_pass(court, meta.last_update, confirmed_ids=confirmed_ids)

        self.notifications.queue(tasks)
        logger.info("%s: Up to date, acknowledged %d new subscription(s)", court, len(tasks))
        return PassResult(court, ACKNOWLEDGED, tasks=tasks, meta=new_meta)

    async def run_pass(self, court: str, force: bool = False) -> PassResult:
        """
        Run one pass for `court`. Returns a PassResult; raises ConsistencyError
        only if the final commit fails (nothing is persisted or queued then).
        """
        logger.debug("%s: Checking for update", court)
        now = self.clock()
        meta = await self.get_meta(court)
        if meta is not None and not force and not is_out_of_date(meta.last_update, now):
            return await self.acknowledge_pending(court, meta)

        logger.info("%s: %s, updating", court, "Forced" if force else "Out of date")
        # Better have last_update too old than too new
        last_update = int(now.timestamp())
        try:
            listing = await asyncio.wait_for(self.fetcher.fetch(court), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning("Failed to get listing for court %s: timed out after %ss", court, self.fetch_timeout)
            return PassResult(court, FETCH_FAILED, meta=meta)
        except FetchError as e:
            logger.warning("Failed to get listing for court %s: %s", court, e)
            return PassResult(court, FETCH_FAILED, meta=meta)

        async with self.session_maker() as db:
            diff = await SessionStore(db).diff(court, listing.sessions)
            subscriptions = await self._snapshot(db, court)

            court_name = listing.full_name or (meta.full_name if meta else None) or court
            tasks, confirmed_ids = build_tasks(court, court_name, diff, subscriptions, diff.current)

            new_meta = await CourtRegistry(db).commit_pass(
                court,
                last_update,
                full_name=listing.full_name,
                sessions=None if diff.is_empty else diff.current,
                confirmed_ids=confirmed_ids,
            )

        self.notifications.queue(tasks)
        status = UNCHANGED if diff.is_empty else UPDATED
        logger.info(
            "Court %s has been updated (%s): +%d -%d, %d task(s)",
            court, status, len(diff.added), len(diff.removed), len(tasks),
        )
        return PassResult(court, status, diff=diff, tasks=tasks, meta=new_meta)

    async def get_court_sessions(
        self,
        court: str,
        date_filter: str = "*",
        reference_filter: str = "",
    ) -> Tuple[Optional[CourtMeta], List[Session]]:
        """
        Refresh the court if it is out of date, then return its meta and the
        stored sessions matching the filters. Raises FilterError for bad filters.
        """
        filter_matcher.session_filter(date_filter, reference_filter)
        await self.run_pass(court)
        async with self.session_maker() as db:
            meta = await CourtRegistry(db).get_meta(court)
            if meta is None:
                return None, []
            sessions = await SessionStore(db).query(court, date_filter, reference_filter)
        return meta, sessions
