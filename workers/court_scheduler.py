"""
Court scheduler: runs Dispatch Engine passes on a timer.

Purpose:
- One timer loop per subscribed court; period = BASE + crc32(name) % JITTER seconds
  so the courts do not all refresh in the same second
- A watcher rescans the subscriptions table every COURT_RESCAN_SEC and starts
  loops for courts subscribed to since the last scan
- At most MAX_CONCURRENT_PASSES passes at once across courts
- Never two passes for the same court at once (one asyncio.Lock per court)

Errors never leave a timer loop: a failed pass is logged and the court is
simply tried again on its next tick.

Usage:
- scheduler = CourtScheduler(engine); await scheduler.start(); ...; await scheduler.stop()
"""
import asyncio
import logging
import re
import zlib
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from core.exceptions import ConsistencyError, InvalidCourtName
from services.court_registry import CourtRegistry
from services.dispatch_engine import DispatchEngine, PassResult

logger = logging.getLogger(__name__)

COURT_NAME_REGEX = re.compile(r"^[a-zA-Z0-9\-]{1,63}$")


def validate_court_name(court: str) -> str:
    if not isinstance(court, str) or not COURT_NAME_REGEX.match(court):
        raise InvalidCourtName(court)
    return court


def update_period(court: str, base: Optional[int] = None, jitter: Optional[int] = None) -> int:
    """Stable per-court refresh period in seconds."""
    base = settings.AUTO_UPDATE_BASE_SEC if base is None else base
    jitter = settings.AUTO_UPDATE_JITTER_SEC if jitter is None else jitter
    if jitter <= 0:
        return base
    return base + zlib.crc32(court.encode("utf-8")) % jitter


class CourtLocks:
    """One asyncio.Lock per court name, created on first use."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, court: str) -> asyncio.Lock:
        lock = self._locks.get(court)
        if lock is None:
            lock = self._locks[court] = asyncio.Lock()
        return lock


class CourtScheduler:
    def __init__(
        self,
        engine: DispatchEngine,
        max_concurrent: Optional[int] = None,
        period: Optional[float] = None,
        rescan_sec: Optional[float] = None,
    ):
        self.engine = engine
        self.locks = CourtLocks()
        self._semaphore = asyncio.Semaphore(max_concurrent or settings.MAX_CONCURRENT_PASSES)
        # fixed period for every court, None means update_period()
        self.period = period
        self.rescan_sec = settings.COURT_RESCAN_SEC if rescan_sec is None else rescan_sec
        self._loops: Dict[str, asyncio.Task] = {}
        self._watcher: Optional[asyncio.Task] = None

    async def run_court(self, court: str, force: bool = False) -> Optional[PassResult]:
        """
        Run one pass for a court under its lock. Returns None if the pass failed;
        InvalidCourtName is the only exception that reaches the caller.
        """
        validate_court_name(court)
        async with self._semaphore:
            async with self.locks.get(court):
                try:
                    return await self.engine.run_pass(court, force=force)
                except ConsistencyError as e:
                    logger.error("Update failed: %s", e)
                except SQLAlchemyError as e:
                    logger.error("Database error during pass for %s: %s", court, e)
        return None

    async def get_court_sessions(self, court: str, date_filter: str = "*", reference_filter: str = ""):
        """Session query that refreshes the court first, serialized with its passes."""
        validate_court_name(court)
        async with self._semaphore:
            async with self.locks.get(court):
                return await self.engine.get_court_sessions(court, date_filter, reference_filter)

    async def run_all(self, courts: Iterable[str], force: bool = False) -> List[Optional[PassResult]]:
        return list(await asyncio.gather(*(self.run_court(c, force=force) for c in courts)))

    async def _loop(self, court: str) -> None:
        period = update_period(court) if self.period is None else self.period
        logger.info("Starting worker task for %s (every %ss)", court, period)
        try:
            while True:
                await asyncio.sleep(period)
                try:
                    await self.run_court(court)
                except Exception:
                    logger.exception("Unexpected error during pass for %s, retrying next tick", court)
        finally:
            logger.info("Worker task for %s shut down.", court)

    def ensure_court(self, court: str) -> bool:
        """Start the timer loop for a court unless it is already running."""
        validate_court_name(court)
        task = self._loops.get(court)
        if task is None or task.done():
            self._loops[court] = asyncio.create_task(self._loop(court), name=f"court-{court}")
            return True
        return False

    async def sync_courts(self) -> List[str]:
        """Start loops for subscribed courts that have none yet; returns the new ones."""
        try:
            async with self.engine.session_maker() as db:
                courts = await CourtRegistry(db).subscribed_courts()
        except SQLAlchemyError as e:
            logger.error("Database error, cannot load subscribed courts: %s", e)
            return []

        started = []
        for court in courts:
            try:
                if self.ensure_court(court):
                    started.append(court)
            except InvalidCourtName:
                logger.warning("Invalid court name in db: %s", court)
        if started:
            logger.info("Watching %d new court(s): %s", len(started), ", ".join(started))
        return started

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.rescan_sec)
            try:
                await self.sync_courts()
            except Exception:
                logger.exception("Court rescan failed")

    async def start(self) -> List[str]:
        """Start loops for every court that has subscriptions, then the rescan watcher."""
        started = await self.sync_courts()
        if self._watcher is None or self._watcher.done():
            self._watcher = asyncio.create_task(self._watch(), name="court-watcher")
        return started

    @property
    def courts(self) -> List[str]:
        return sorted(c for c, t in self._loops.items() if not t.done())

    async def stop(self) -> None:
        tasks = list(self._loops.values())
        if self._watcher is not None:
            tasks.append(self._watcher)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._watcher = None
