"""Baseline: user documents and leaderboard history.

Creates user_documents (one JSONB document per user) and the append-only
leaderboard_history table whose (period_kind, period_key) uniqueness
gates reward settlement to once per period.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- User Documents ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_documents (
            id VARCHAR(128) PRIMARY KEY,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_documents_weekly_steps
        ON user_documents (((data->>'weekly_steps')::integer) DESC NULLS LAST)
    """)

    # --- Leaderboard History ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_history (
            id SERIAL PRIMARY KEY,
            period_kind VARCHAR(16) NOT NULL,
            period_key VARCHAR(10) NOT NULL,
            winners JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_leaderboard_history_period UNIQUE (period_kind, period_key)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leaderboard_history")
    op.execute("DROP TABLE IF EXISTS user_documents")
