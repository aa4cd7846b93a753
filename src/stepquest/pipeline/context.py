"""Shared plumbing for pipeline drivers.

A ``PipelineContext`` is built once at process start and passed into every
driver; drivers keep no state of their own between invocations.
"""

from __future__ import annotations

import enum
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from stepquest.config import Settings
from stepquest.errors import StoreError
from stepquest.leaderboard.schemas import UserRecord
from stepquest.notifications.push import DispatchRound, NotificationDispatcher
from stepquest.store.documents import Document, DocumentStore, WriteBatch

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PipelineContext:
    store: DocumentStore
    dispatcher: NotificationDispatcher
    settings: Settings
    clock: Callable[[], datetime] = utc_now
    rng: random.Random = field(default_factory=random.Random)

    @property
    def zone(self) -> ZoneInfo:
        return self.settings.zone

    def now(self) -> datetime:
        return self.clock()


class RunStatus(str, enum.Enum):
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RunResult:
    driver: str
    status: RunStatus
    period_key: str | None = None
    processed: int = 0
    notified: int = 0
    pruned: int = 0
    error: str | None = None


def load_user(doc: Document) -> UserRecord | None:
    """Parse a document, or log and skip a malformed one."""
    try:
        return UserRecord.from_document(doc.id, doc.data)
    except ValidationError as exc:
        logger.warning("user_document_invalid", user_id=doc.id, errors=exc.error_count())
        return None


async def commit_batch(store: DocumentStore, batch: WriteBatch, log: structlog.stdlib.BoundLogger) -> str | None:
    """Commit a batch; return the error text when the store rejects it."""
    try:
        await store.commit(batch)
    except StoreError as exc:
        log.error("batch_rejected", error=str(exc), operations=len(batch))
        return str(exc)
    return None


async def prune_rejected_tokens(
    store: DocumentStore,
    delivery: DispatchRound,
    log: structlog.stdlib.BoundLogger,
) -> int:
    """Clear every token the gateway rejected during this run, in one batch."""
    batch = WriteBatch()
    pruned = delivery.prune(batch)
    if not pruned:
        return 0
    if await commit_batch(store, batch, log) is not None:
        return 0
    log.info("tokens_pruned", count=pruned)
    return pruned
