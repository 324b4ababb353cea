import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio


# Ensure project root is on sys.path so `services.*`, `models.*` imports work
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# Explicitly enable pytest-asyncio plugin for async tests/fixtures
pytest_plugins = ("pytest_asyncio",)


from core.db import build_engine, build_session_maker, create_all
from core.exceptions import DeliveryError, FetchError
from models.session import CourtListing, Session
from services.dispatch_engine import DispatchEngine
from services.notification_service import NotificationService
from services.subscription_db_service import SubscriptionDBService


def make_session(**overrides) -> Session:
    values = {
        "date": "2024-01-10",
        "time": "09:00",
        "type": "hearing",
        "lawsuit": "L1",
        "hall": "H1",
        "reference": "R1",
        "note": "",
    }
    values.update(overrides)
    return Session(**values)


class FakeFetcher:
    """Fetch collaborator returning canned listings (or raising) per court."""

    def __init__(self):
        self.listings = {}
        self.errors = {}
        self.calls = []

    def set(self, court, sessions, full_name="Court One"):
        self.listings[court] = CourtListing(full_name=full_name, sessions=list(sessions))
        self.errors.pop(court, None)

    def fail(self, court, message="source unavailable"):
        self.errors[court] = FetchError(message, court=court)

    async def fetch(self, court):
        self.calls.append(court)
        if court in self.errors:
            raise self.errors[court]
        return self.listings.get(court, CourtListing(full_name=None, sessions=[]))


class RecordingSender:
    """Delivery sender that records messages, optionally failing every send."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, chat_id, message):
        if self.fail:
            raise DeliveryError("transport down", chat_id=chat_id)
        self.sent.append((chat_id, message))
        return True


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 9, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest_asyncio.fixture()
async def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(db_engine):
    return build_session_maker(db_engine)


@pytest.fixture()
def fetcher():
    return FakeFetcher()


@pytest.fixture()
def sender():
    return RecordingSender()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def notifications(sender):
    return NotificationService(sender=sender, interval_sec=0, timeout_sec=1)


@pytest.fixture()
def engine(session_maker, fetcher, notifications, clock):
    return DispatchEngine(session_maker, fetcher, notifications, clock=clock, fetch_timeout=1)


@pytest.fixture()
def add_subscription(session_maker):
    """Create a subscription through the subscription collaborator; returns its dict."""
    async def _add(chat_id=42, court="C1", name="sub", date_filter="*", reference_filter=""):
        async with session_maker() as db:
            res = await SubscriptionDBService(db).add_subscription(
                chat_id=chat_id,
                court=court,
                name=name,
                reference_filter=reference_filter,
                date_filter=date_filter,
            )
        assert res["status_code"] == 201, res
        return res["subscription"]
    return _add
