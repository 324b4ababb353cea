"""
Async database engine and session management.

Purpose:
- Create SQLAlchemy async engine (aiosqlite by default)
- Provide async session factory for services and API dependencies
- Provide Base declarative class for ORM models

Production notes:
- SQLite serializes writers; for several processes point DATABASE_URL at a server database
- Use Alembic migrations instead of create_all outside local dev
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config.settings import settings
import logging
from typing import AsyncGenerator

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
	"""Create an async engine; SQLite connections get a busy timeout."""
	engine = create_async_engine(url, echo=echo, future=True)
	if url.startswith("sqlite"):
		@event.listens_for(engine.sync_engine, "connect")
		def _sqlite_pragmas(dbapi_connection, connection_record):
			cursor = dbapi_connection.cursor()
			cursor.execute("PRAGMA busy_timeout = 5000")
			cursor.close()
	return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
	return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_maker = build_session_maker(engine)
logger.info("Async DB engine created: %s", settings.DATABASE_URL)


async def create_all(target: AsyncEngine | None = None) -> None:
	"""Create all tables (development convenience; use Alembic in production)."""
	from models import db_models  # noqa: F401 ensure models are imported so tables are registered

	async with (target or engine).begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
	"""Yield an AsyncSession for FastAPI dependencies."""
	async with async_session_maker() as session:
		try:
			yield session
		finally:
			await session.close()
