"""
Main FastAPI application (entrypoint).

Responsibilities:
- Wire the Dispatch Engine: fetcher, notification service, scheduler
- Start the per-court timers and the delivery loop on startup, stop them on shutdown
- Wire API routers, exception handlers and request-id logging
- Health / readiness endpoints
Notes:
- Tables are created on startup for local dev; use `alembic upgrade head` in production.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging
import uvicorn

from api import routes_courts
from config.settings import settings
from core.db import async_session_maker, create_all
from core.exception_handlers import register_exception_handlers
from core.logging import configure_logging, request_logging_middleware
from core.response import ok
from services.court_fetcher import HttpCourtFetcher
from services.dispatch_engine import DispatchEngine
from services.notification_service import NotificationService
from workers.court_scheduler import CourtScheduler

logger = logging.getLogger(__name__)


def build_scheduler() -> CourtScheduler:
    notifications = NotificationService()
    dispatch = DispatchEngine(async_session_maker, HttpCourtFetcher(), notifications)
    return CourtScheduler(dispatch)


def create_app(scheduler: Optional[CourtScheduler] = None, run_background: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_background:
            try:
                await create_all()
            except SQLAlchemyError as e:
                logger.warning("DB initialization failed on startup: %s", e)
            app.state.scheduler.engine.notifications.start()
            started = await app.state.scheduler.start()
            logger.info("Watching %d court(s): %s", len(started), ", ".join(started))
        try:
            yield
        finally:
            await app.state.scheduler.stop()
            await app.state.scheduler.engine.notifications.stop()

    app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION, lifespan=lifespan)
    app.state.scheduler = scheduler or build_scheduler()

    app.include_router(routes_courts.router, prefix="", tags=["courts"])
    register_exception_handlers(app)
    app.middleware("http")(request_logging_middleware)

    @app.get("/health")
    async def health():
        """Simple health endpoint used by load balancers and orchestrators."""
        return ok({"status": "ok", "courts": app.state.scheduler.courts})

    @app.get("/ready")
    async def ready():
        """Readiness: check DB connectivity."""
        try:
            async with app.state.scheduler.engine.session_maker() as session:
                await session.execute(text("SELECT 1"))
            return ok({"ready": True})
        except SQLAlchemyError:
            return JSONResponse(status_code=503, content={"ok": False, "data": None, "error": {"code": "db_unreachable", "message": "DB unavailable"}})

    return app


configure_logging()
app = create_app()

if __name__ == "__main__":
    # Run with: python main.py for local dev. One process only: court locks are in-process.
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
