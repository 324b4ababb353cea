# api/routes_courts.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.db import get_db_session
from core.response import ok
from models.schemas import CourtSessionsResponse, PassResponse
from services.subscription_db_service import SubscriptionDBService
from workers.court_scheduler import CourtScheduler

router = APIRouter()


def get_scheduler(request: Request) -> CourtScheduler:
    return request.app.state.scheduler


@router.get("/courts/{court}/sessions")
async def court_sessions(
    court: str,
    date: str = Query("*", description='ISO date, DD.MM.YYYY or "*"'),
    reference: str = Query("", description='Reference glob ("*" any run, "?" one character)'),
    scheduler: CourtScheduler = Depends(get_scheduler),
):
    """List a court's current sessions matching the filters; refreshes the court if stale."""
    meta, sessions = await scheduler.get_court_sessions(court, date, reference)
    if meta is None:
        raise HTTPException(status_code=404, detail="No information available for this court")
    return ok(CourtSessionsResponse(
        court=meta.name,
        full_name=meta.display_name,
        last_update=meta.last_update,
        sessions=sessions,
    ).model_dump())


@router.post("/courts/{court}/update")
async def court_update(
    court: str,
    force: bool = Query(True),
    scheduler: CourtScheduler = Depends(get_scheduler),
):
    """Run a pass for the court now (forced by default) and start its timer."""
    result = await scheduler.run_court(court, force=force)
    scheduler.ensure_court(court)
    if result is None:
        raise HTTPException(status_code=503, detail="Update failed, try again later")
    return ok(PassResponse(
        court=result.court,
        status=result.status,
        added=len(result.diff.added),
        removed=len(result.diff.removed),
        unchanged=len(result.diff.unchanged),
        notifications=len(result.tasks),
        last_update=result.meta.last_update if result.meta else None,
    ).model_dump())


@router.get("/chats/{chat_id}/subscriptions")
async def chat_subscriptions(chat_id: int, session: AsyncSession = Depends(get_db_session)):
    """List the subscriptions of a chat."""
    return ok(await SubscriptionDBService(session).list_by_chat(chat_id))
