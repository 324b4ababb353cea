"""
SQLAlchemy models for the courts, sessions and subscriptions tables.

Purpose:
- Define Court and Subscription ORM classes and the sessions table
- Column layout matches alembic/versions/001_initial_schema.py

Notes:
- sessions has no surrogate key: a session's identity is its full field tuple,
  so the table is mapped with SQLAlchemy Core instead of an ORM class
- last_update is stored as a unix timestamp (INTEGER), confirmation_sent as 0/1
"""

from sqlalchemy import Column, Integer, String, Table, Index, UniqueConstraint, text
from core.db import Base


class Court(Base):
    """
    A court whose session calendar is tracked.

    Columns:
    - name: unique court name as used by the source (e.g. "vg-koeln")
    - full_name: display name reported by the source, NULL until first refresh
    - last_update: unix timestamp of the last successful refresh
    """
    __tablename__ = "courts"

    name = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    last_update = Column(Integer, nullable=False)


sessions_table = Table(
    "sessions",
    Base.metadata,
    Column("court", String, nullable=False),
    Column("date", String, nullable=False),  # ISO8601 YYYY-MM-DD
    Column("time", String, nullable=False),
    Column("type", String, nullable=False),
    Column("lawsuit", String, nullable=False),
    Column("hall", String, nullable=False),
    Column("reference", String, nullable=False),
    Column("note", String, nullable=False),
    Index("ix_sessions_court", "court"),
)


class Subscription(Base):
    """
    A chat's standing request to be notified about sessions of one court.

    Columns:
    - subscription_id: numeric id
    - chat_id: subscriber chat handle
    - court: court name (not a foreign key, courts rows appear on first refresh)
    - name: subscriber-chosen label, unique per chat
    - confirmation_sent: 0 until the acknowledgment was queued, then 1 forever
    - date_filter / reference_filter: see services/filter_matcher.py
    """
    __tablename__ = "subscriptions"

    subscription_id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(Integer, nullable=False)
    court = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    confirmation_sent = Column(Integer, nullable=False, default=0, server_default=text("0"))
    date_filter = Column(String, nullable=False)
    reference_filter = Column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("chat_id", "name", name="ux_subscription_chat_name"),
    )
