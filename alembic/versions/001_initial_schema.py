"""
Initial database schema: courts, sessions, subscriptions.

Revision ID: 001
Created: 2024-08-28
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    """Create initial tables."""
    # Courts: one row per court, written only by the Dispatch Engine
    op.create_table(
        "courts",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("last_update", sa.Integer(), nullable=False),  # unix timestamp
        sa.PrimaryKeyConstraint("name"),
    )

    # Sessions: no surrogate key, identity is the full tuple
    op.create_table(
        "sessions",
        sa.Column("court", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),  # ISO8601 YYYY-MM-DD
        sa.Column("time", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("lawsuit", sa.String(), nullable=False),
        sa.Column("hall", sa.String(), nullable=False),
        sa.Column("reference", sa.String(), nullable=False),
        sa.Column("note", sa.String(), nullable=False),
    )
    op.create_index("ix_sessions_court", "sessions", ["court"])

    # Subscriptions table
    op.create_table(
        "subscriptions",
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("chat_id", sa.Integer(), nullable=False),
        sa.Column("court", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("confirmation_sent", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("date_filter", sa.String(), nullable=False),
        sa.Column("reference_filter", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("subscription_id"),
        sa.UniqueConstraint("chat_id", "name", name="ux_subscription_chat_name"),
    )
    op.create_index("ix_subscriptions_court", "subscriptions", ["court"])

def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_subscriptions_court", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_sessions_court", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("courts")
