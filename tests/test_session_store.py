import pytest

from conftest import make_session
from core.exceptions import FilterError
from services.court_registry import CourtRegistry
from services.session_store import SessionStore, diff_sessions


def test_diff_identical_listings_is_empty():
    old = [make_session(reference="R1"), make_session(reference="R2")]
    new = [make_session(reference="R2"), make_session(reference="R1")]

    diff = diff_sessions(old, new)

    assert diff.is_empty
    assert diff.added == [] and diff.removed == []
    assert len(diff.unchanged) == 2


def test_diff_detects_added_and_removed():
    old = [make_session(reference="R1"), make_session(reference="R2")]
    new = [make_session(reference="R2"), make_session(reference="R3")]

    diff = diff_sessions(old, new)

    assert [s.reference for s in diff.added] == ["R3"]
    assert [s.reference for s in diff.removed] == ["R1"]
    assert [s.reference for s in diff.unchanged] == ["R2"]
    assert [s.reference for s in diff.current] == ["R2", "R3"]


def test_changed_field_is_removed_plus_added():
    """A session is identified by all its fields; a moved hall is a new session."""
    old = [make_session(hall="H1")]
    new = [make_session(hall="H2")]

    diff = diff_sessions(old, new)

    assert [s.hall for s in diff.added] == ["H2"]
    assert [s.hall for s in diff.removed] == ["H1"]


def test_duplicates_in_one_listing_collapse():
    diff = diff_sessions([], [make_session(), make_session()])
    assert len(diff.added) == 1
    assert len(diff.current) == 1


def test_first_listing_is_all_added():
    diff = diff_sessions([], [make_session(reference="R1")])
    assert not diff.is_empty
    assert [s.reference for s in diff.added] == ["R1"]


@pytest.mark.asyncio
async def test_load_and_query_stored_sessions(session_maker):
    sessions = [
        make_session(date="2024-01-11", time="10:00", reference="7 K 1/24"),
        make_session(date="2024-01-10", time="09:00", reference="7 K 2/24"),
        make_session(date="2024-01-10", time="08:00", reference="3 L 5/24"),
    ]
    async with session_maker() as db:
        await CourtRegistry(db).commit_pass("C1", 1000, full_name="Court One", sessions=sessions)

    async with session_maker() as db:
        store = SessionStore(db)
        loaded = await store.load("C1")
        assert [(s.date, s.time) for s in loaded] == [
            ("2024-01-10", "08:00"),
            ("2024-01-10", "09:00"),
            ("2024-01-11", "10:00"),
        ]
        assert await store.load("C2") == []

        by_date = await store.query("C1", date_filter="10.01.2024")
        assert {s.reference for s in by_date} == {"7 K 2/24", "3 L 5/24"}

        by_reference = await store.query("C1", reference_filter="7 K *")
        assert {s.reference for s in by_reference} == {"7 K 1/24", "7 K 2/24"}

        with pytest.raises(FilterError):
            await store.query("C1", date_filter="soon")


@pytest.mark.asyncio
async def test_store_diff_against_stored_listing(session_maker):
    async with session_maker() as db:
        await CourtRegistry(db).commit_pass("C1", 1000, sessions=[make_session(reference="R1")])

    async with session_maker() as db:
        diff = await SessionStore(db).diff("C1", [make_session(reference="R1"), make_session(reference="R2")])

    assert [s.reference for s in diff.added] == ["R2"]
    assert [s.reference for s in diff.unchanged] == ["R1"]
