"""Document store over user records and leaderboard history.

Drivers never write directly: they enqueue field-level operations on a
``WriteBatch`` and hand it to ``DocumentStore.commit``, which applies the
whole batch in one transaction or not at all.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stepquest.db.models import LeaderboardHistory, UserDocument
from stepquest.errors import HistoryConflictError, StoreError
from stepquest.leaderboard.ranking import CounterSelector
from stepquest.leaderboard.schemas import HistoryRecord, LeaderboardEntry, PeriodKind

OpKind = Literal["set", "increment", "delete", "default", "clear_if"]


@dataclass(frozen=True)
class Document:
    """Snapshot of one user document."""

    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class FieldOp:
    user_id: str
    kind: OpKind
    field: str
    value: Any = None


@dataclass
class WriteBatch:
    """Field-level mutations and history appends committed as one unit."""

    ops: list[FieldOp] = field(default_factory=list)
    history: list[HistoryRecord] = field(default_factory=list)

    def set(self, user_id: str, values: Mapping[str, Any]) -> None:
        """Overwrite top-level fields. A ``None`` value stores null."""
        for name, value in values.items():
            self.ops.append(FieldOp(user_id, "set", name, value))

    def increment(self, user_id: str, name: str, amount: int) -> None:
        """Add ``amount`` to a numeric field, read at commit time."""
        self.ops.append(FieldOp(user_id, "increment", name, amount))

    def delete_field(self, user_id: str, name: str) -> None:
        self.ops.append(FieldOp(user_id, "delete", name))

    def clear_if_equal(self, user_id: str, name: str, expected: Any) -> None:
        """Null a field only if it still holds ``expected`` at commit time."""
        self.ops.append(FieldOp(user_id, "clear_if", name, expected))

    def set_default(self, user_id: str, values: Mapping[str, Any]) -> None:
        """Set fields only where absent, creating the document if needed."""
        for name, value in values.items():
            self.ops.append(FieldOp(user_id, "default", name, value))

    def add_history(self, record: HistoryRecord) -> None:
        self.history.append(record)

    def user_ids(self) -> list[str]:
        return list(dict.fromkeys(op.user_id for op in self.ops))

    def ops_for(self, user_id: str) -> list[FieldOp]:
        return [op for op in self.ops if op.user_id == user_id]

    def creates(self, user_id: str) -> bool:
        return any(op.kind == "default" for op in self.ops_for(user_id))

    def conditional_only(self, user_id: str) -> bool:
        """True when every op on the user is a ``clear_if``, which a missing document satisfies."""
        ops = self.ops_for(user_id)
        return bool(ops) and all(op.kind == "clear_if" for op in ops)

    def __len__(self) -> int:
        return len(self.ops) + len(self.history)

    @property
    def is_empty(self) -> bool:
        return not self.ops and not self.history


def apply_ops(data: Mapping[str, Any], ops: Iterable[FieldOp]) -> dict[str, Any]:
    """Return a new document with ``ops`` applied in order."""
    result = copy.deepcopy(dict(data))
    for op in ops:
        if op.kind == "set":
            result[op.field] = op.value
        elif op.kind == "increment":
            result[op.field] = int(result.get(op.field) or 0) + op.value
        elif op.kind == "delete":
            result.pop(op.field, None)
        elif op.kind == "default":
            result.setdefault(op.field, copy.deepcopy(op.value))
        elif op.kind == "clear_if":
            if result.get(op.field) == op.value:
                result[op.field] = None
    return result


class DocumentStore(Protocol):
    """Operations the pipeline consumes from the store."""

    async def get(self, user_id: str) -> Document | None: ...

    def stream_users(self) -> AsyncIterator[Document]: ...

    async def top_users(self, selector: CounterSelector, limit: int) -> list[Document]: ...

    async def history_exists(self, kind: PeriodKind, period_key: str) -> bool: ...

    async def list_history(self, kind: PeriodKind, limit: int = 10) -> list[HistoryRecord]: ...

    async def commit(self, batch: WriteBatch) -> None: ...


class SqlDocumentStore:
    """DocumentStore backed by the ``user_documents`` and ``leaderboard_history`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], page_size: int = 500) -> None:
        self._session_factory = session_factory
        self._page_size = page_size

    async def get(self, user_id: str) -> Document | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(UserDocument, user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read user {user_id}: {exc}") from exc
        return Document(row.id, dict(row.data)) if row else None

    async def stream_users(self) -> AsyncIterator[Document]:
        """Yield every user document, paging by id."""
        last_id: str | None = None
        while True:
            stmt = select(UserDocument).order_by(UserDocument.id).limit(self._page_size)
            if last_id is not None:
                stmt = stmt.where(UserDocument.id > last_id)
            try:
                async with self._session_factory() as session:
                    rows = (await session.execute(stmt)).scalars().all()
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to page user documents: {exc}") from exc

            for row in rows:
                yield Document(row.id, dict(row.data))
            if len(rows) < self._page_size:
                return
            last_id = rows[-1].id

    async def top_users(self, selector: CounterSelector, limit: int) -> list[Document]:
        """Top ``limit`` users by counter DESC, user id ASC."""
        stmt = (
            select(UserDocument)
            .order_by(selector.sql_value(UserDocument.data).desc(), UserDocument.id.asc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to query {selector.kind} leaderboard: {exc}") from exc
        return [Document(row.id, dict(row.data)) for row in rows]

    async def history_exists(self, kind: PeriodKind, period_key: str) -> bool:
        stmt = select(LeaderboardHistory.id).where(
            LeaderboardHistory.period_kind == kind,
            LeaderboardHistory.period_key == period_key,
        )
        try:
            async with self._session_factory() as session:
                found = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {kind} history: {exc}") from exc
        return found is not None

    async def list_history(self, kind: PeriodKind, limit: int = 10) -> list[HistoryRecord]:
        stmt = (
            select(LeaderboardHistory)
            .where(LeaderboardHistory.period_kind == kind)
            .order_by(LeaderboardHistory.period_key.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list {kind} history: {exc}") from exc
        return [
            HistoryRecord(
                kind=row.period_kind,  # type: ignore[arg-type]
                period_key=row.period_key,
                winners=[LeaderboardEntry.model_validate(w) for w in row.winners],
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def commit(self, batch: WriteBatch) -> None:
        """Apply the batch atomically.

        Updating a missing document rejects the whole batch, as does a
        second history record for the same period. Conditional clears on a
        missing document are skipped.
        """
        if batch.is_empty:
            return

        try:
            async with self._session_factory() as session, session.begin():
                user_ids = batch.user_ids()
                rows: dict[str, UserDocument] = {}
                if user_ids:
                    result = await session.execute(
                        select(UserDocument).where(UserDocument.id.in_(user_ids)).with_for_update()
                    )
                    rows = {row.id: row for row in result.scalars()}

                for user_id in user_ids:
                    row = rows.get(user_id)
                    if row is None:
                        if batch.conditional_only(user_id):
                            continue
                        if not batch.creates(user_id):
                            raise StoreError(f"User document {user_id} does not exist")
                        row = UserDocument(id=user_id, data={})
                        session.add(row)
                    # Reassign so the JSON column is flagged dirty
                    row.data = apply_ops(row.data or {}, batch.ops_for(user_id))

                for record in batch.history:
                    session.add(
                        LeaderboardHistory(
                            period_kind=record.kind,
                            period_key=record.period_key,
                            winners=[w.model_dump(mode="json", by_alias=True) for w in record.winners],
                            created_at=record.created_at,
                        )
                    )
                await session.flush()
        except IntegrityError as exc:
            if batch.history:
                record = batch.history[0]
                raise HistoryConflictError(record.kind, record.period_key) from exc
            raise StoreError(f"Batch rejected: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Batch commit failed: {exc}") from exc
