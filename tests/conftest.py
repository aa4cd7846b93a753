"""Shared test fixtures: an in-memory document store and a recording push gateway."""

from __future__ import annotations

import copy
import random
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import pytest

from stepquest.config import Settings
from stepquest.errors import HistoryConflictError, InvalidTokenError, StoreError, TransientDeliveryError
from stepquest.leaderboard.ranking import CounterSelector
from stepquest.leaderboard.schemas import HistoryRecord, PeriodKind
from stepquest.notifications.push import NotificationDispatcher, PushMessage
from stepquest.pipeline.context import PipelineContext
from stepquest.store.documents import Document, WriteBatch, apply_ops

# 2026-03-10 15:00 in Asia/Karachi (UTC+5)
NOW = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


class InMemoryDocumentStore:
    """DocumentStore over plain dicts with the same all-or-nothing commit."""

    def __init__(self, users: dict[str, dict[str, Any]] | None = None) -> None:
        self.docs: dict[str, dict[str, Any]] = copy.deepcopy(users or {})
        self.history: list[HistoryRecord] = []
        self.commits: list[WriteBatch] = []
        self.fail_commits = False
        self.fail_reads = False

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise StoreError("store unavailable")

    async def get(self, user_id: str) -> Document | None:
        self._check_reads()
        data = self.docs.get(user_id)
        return Document(user_id, copy.deepcopy(data)) if data is not None else None

    async def stream_users(self) -> AsyncIterator[Document]:
        self._check_reads()
        for user_id in sorted(self.docs):
            yield Document(user_id, copy.deepcopy(self.docs[user_id]))

    async def top_users(self, selector: CounterSelector, limit: int) -> list[Document]:
        self._check_reads()
        ordered = sorted(self.docs.items(), key=lambda item: (-selector.value(item[1]), item[0]))
        return [Document(user_id, copy.deepcopy(data)) for user_id, data in ordered[:limit]]

    async def history_exists(self, kind: PeriodKind, period_key: str) -> bool:
        self._check_reads()
        return any(r.kind == kind and r.period_key == period_key for r in self.history)

    async def list_history(self, kind: PeriodKind, limit: int = 10) -> list[HistoryRecord]:
        records = sorted((r for r in self.history if r.kind == kind), key=lambda r: r.period_key, reverse=True)
        return records[:limit]

    async def commit(self, batch: WriteBatch) -> None:
        if self.fail_commits:
            raise StoreError("commit rejected")

        seen = {(r.kind, r.period_key) for r in self.history}
        for record in batch.history:
            if (record.kind, record.period_key) in seen:
                raise HistoryConflictError(record.kind, record.period_key)
            seen.add((record.kind, record.period_key))

        updated: dict[str, dict[str, Any]] = {}
        for user_id in batch.user_ids():
            if user_id not in self.docs and batch.conditional_only(user_id):
                continue
            if user_id not in self.docs and not batch.creates(user_id):
                raise StoreError(f"User document {user_id} does not exist")
            updated[user_id] = apply_ops(self.docs.get(user_id, {}), batch.ops_for(user_id))

        self.docs.update(updated)
        self.history.extend(batch.history)
        self.commits.append(batch)


class RecordingGateway:
    """Push gateway that records messages and fails chosen tokens."""

    def __init__(self) -> None:
        self.sent: list[PushMessage] = []
        self.invalid_tokens: set[str] = set()
        self.flaky_tokens: set[str] = set()
        self.closed = False

    async def send(self, message: PushMessage) -> str:
        if message.token in self.invalid_tokens:
            raise InvalidTokenError("Requested entity was not found.", code="UNREGISTERED")
        if message.token in self.flaky_tokens:
            raise TransientDeliveryError("The service is currently unavailable.", code="UNAVAILABLE")
        self.sent.append(message)
        return f"projects/test/messages/{len(self.sent)}"

    async def aclose(self) -> None:
        self.closed = True

    def types_sent(self) -> list[str]:
        return [m.data.get("type") for m in self.sent]

    def tokens_sent(self) -> list[str]:
        return [m.token for m in self.sent]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(push_mode="log", database_url="sqlite+aiosqlite://", _env_file=None)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def ctx(store: InMemoryDocumentStore, gateway: RecordingGateway, settings: Settings) -> PipelineContext:
    return PipelineContext(
        store=store,
        dispatcher=NotificationDispatcher(gateway),
        settings=settings,
        clock=lambda: NOW,
        rng=random.Random(7),
    )
