"""ORM models for user documents and leaderboard history.

User records are schemaless documents: one row per user, the whole record
in a JSON column. The pipeline only reads and writes the fields it owns.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from stepquest.db.base import Base

DocumentJSON = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserDocument(Base):
    """Maps to the 'user_documents' table."""

    __tablename__ = "user_documents"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(DocumentJSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


# ---------------------------------------------------------------------------
# Leaderboard history
# ---------------------------------------------------------------------------


class LeaderboardHistory(Base):
    """Immutable snapshot of one period's winners. Append-only."""

    __tablename__ = "leaderboard_history"
    __table_args__ = (
        UniqueConstraint("period_kind", "period_key", name="uq_leaderboard_history_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    period_key: Mapped[str] = mapped_column(String(10), nullable=False)
    winners: Mapped[list[dict[str, Any]]] = mapped_column(DocumentJSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
