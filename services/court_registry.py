"""
Court registry: last-update bookkeeping and the atomic per-court commit.

Purpose:
- Read a court's CourtMeta (display name + last update)
- Decide whether a court's listing is stale (daily threshold policy)
- Commit one pass: courts row, sessions and confirmation flags in ONE transaction

The Dispatch Engine is the only writer of courts.last_update and of sessions.
"""
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from core.exceptions import ConsistencyError
from models.db_models import Court, Subscription, sessions_table
from models.session import CourtMeta, Session

logger = logging.getLogger(__name__)


def update_threshold(now: datetime, hour: int | None = None, tz_name: str | None = None) -> datetime:
    """Most recent daily threshold (e.g. 08:00 Europe/Berlin) at or before `now`, in UTC."""
    tz = ZoneInfo(tz_name or settings.UPDATE_TIMEZONE)
    threshold_time = time(hour=settings.UPDATE_THRESHOLD_HOUR if hour is None else hour)
    local_now = now.astimezone(tz)
    day = local_now.date()
    if local_now.time() < threshold_time:
        day -= timedelta(days=1)
    return datetime.combine(day, threshold_time, tzinfo=tz).astimezone(timezone.utc)


def is_out_of_date(last_update: int, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return datetime.fromtimestamp(last_update, tz=timezone.utc) < update_threshold(now)


class CourtRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_meta(self, court: str) -> Optional[CourtMeta]:
        row = await self.session.get(Court, court)
        if row is None:
            return None
        return CourtMeta(name=row.name, full_name=row.full_name, last_update=row.last_update)

    async def subscribed_courts(self) -> List[str]:
        """Courts referenced by at least one subscription."""
        result = await self.session.execute(select(Subscription.court).distinct().order_by(Subscription.court))
        return list(result.scalars().all())

    async def commit_pass(
        self,
        court: str,
        last_update: int,
        full_name: Optional[str] = None,
        sessions: Optional[Sequence[Session]] = None,
        confirmed_ids: Iterable[int] = (),
    ) -> CourtMeta:
        """
        Atomically:
        - upsert the courts row; last_update never moves backwards, full_name is kept when None
        - replace the court's sessions when `sessions` is given
        - set confirmation_sent = 1 for `confirmed_ids` still at 0

        Raises ConsistencyError (after rollback) if anything fails.
        """
        confirmed_ids = list(confirmed_ids)
        try:
            row = await self.session.get(Court, court)
            if row is None:
                row = Court(name=court, full_name=full_name, last_update=last_update)
                self.session.add(row)
            else:
                row.last_update = max(row.last_update, last_update)
                if full_name is not None:
                    row.full_name = full_name

            if sessions is not None:
                await self.session.execute(delete(sessions_table).where(sessions_table.c.court == court))
                if sessions:
                    await self.session.execute(
                        insert(sessions_table),
                        [{"court": court, **s.model_dump()} for s in sessions],
                    )

            if confirmed_ids:
                await self.session.execute(
                    update(Subscription)
                    .where(Subscription.subscription_id.in_(confirmed_ids))
                    .where(Subscription.confirmation_sent == 0)
                    .values(confirmation_sent=1)
                    .execution_options(synchronize_session=False)
                )

            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("%s: commit failed, nothing persisted (%s)", court, e)
            raise ConsistencyError("Commit failed", court=court) from e

        logger.debug(
            "%s: committed last_update=%s sessions=%s confirmed=%s",
            court, row.last_update, "kept" if sessions is None else len(sessions), confirmed_ids,
        )
        return CourtMeta(name=row.name, full_name=row.full_name, last_update=row.last_update)
