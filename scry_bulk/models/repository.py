"""Repository helpers for persistence models."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence, runtime_checkable

from sqlalchemy import Engine, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..schemas.records import CanonicalRecord
from .base import session_scope
from .card import Card
from .sync_run import SyncRun

_UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}
_IMMUTABLE_COLUMNS = frozenset({"id", "slug", "created_at"})


@runtime_checkable
class RecordStore(Protocol):
    """Destination for committed batches of canonical records."""

    async def upsert_many(self, records: Sequence[CanonicalRecord]) -> int:
        """Insert or replace ``records`` keyed on slug, returning rows written."""
        ...


def dedupe_by_slug(records: Sequence[CanonicalRecord]) -> list[CanonicalRecord]:
    """Collapse repeated slugs to their last occurrence, keeping first-seen order."""

    latest: dict[str, CanonicalRecord] = {}
    for record in records:
        latest[record.slug] = record
    return list(latest.values())


class CardRepository:
    """Data access helpers for :class:`Card`."""

    def __init__(self, session: Session):
        """Store the SQLAlchemy session used for persistence operations."""

        self._session = session

    def upsert_many(self, records: Sequence[CanonicalRecord]) -> int:
        """Write ``records`` with one upsert statement keyed on ``slug``.

        Later duplicates inside ``records`` win, so the result matches applying
        the records one by one in order.
        """

        unique = dedupe_by_slug(records)
        if not unique:
            return 0

        now = datetime.now(timezone.utc)
        rows = [{**record.model_dump(), "updated_at": now} for record in unique]

        dialect = self._session.get_bind().dialect.name
        insert_factory = _UPSERT_DIALECTS.get(dialect)
        if insert_factory is None:
            self._merge_rows(rows)
            return len(rows)

        stmt = insert_factory(Card.__table__)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                column.name: stmt.excluded[column.name]
                for column in Card.__table__.columns
                if column.name not in _IMMUTABLE_COLUMNS
            },
        )
        self._session.execute(stmt, rows)
        return len(rows)

    def _merge_rows(self, rows: list[dict[str, Any]]) -> None:
        for row in rows:
            card = self.get_by_slug(row["slug"])
            if card is None:
                self._session.add(Card(**row))
                continue
            for key, value in row.items():
                setattr(card, key, value)
        self._session.flush()

    def get_by_slug(self, slug: str) -> Card | None:
        """Return the card stored under ``slug`` if present."""

        return self._session.scalar(select(Card).where(Card.slug == slug))

    def count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(Card)) or 0


class SqlAlchemyRecordStore:
    """Record store backed by the configured relational database.

    Each batch is written inside its own transaction on a worker thread so the
    event loop keeps running while the database works. Without an explicit
    ``engine`` the one configured through settings is used.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self.engine = engine

    async def upsert_many(self, records: Sequence[CanonicalRecord]) -> int:
        return await asyncio.to_thread(self._upsert_sync, list(records))

    def _upsert_sync(self, records: list[CanonicalRecord]) -> int:
        with session_scope(self.engine) as session:
            return CardRepository(session).upsert_many(records)


class InMemoryRecordStore:
    """Record store keeping the latest record per slug in a dictionary."""

    def __init__(self) -> None:
        self.records: dict[str, CanonicalRecord] = {}
        self.calls = 0

    async def upsert_many(self, records: Sequence[CanonicalRecord]) -> int:
        self.calls += 1
        unique = dedupe_by_slug(records)
        for record in unique:
            self.records[record.slug] = record
        return len(unique)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(slots=True)
class SyncRunCreate:
    """Value object capturing required fields to persist a sync run."""

    snapshot_type: str | None
    file_path: str | None
    status: str
    records_processed: int = 0
    batches_committed: int = 0
    duration_ms: int | None = None
    error_details: dict[str, Any] | None = None


class SyncRunRepository:
    """Data access helpers for :class:`SyncRun`."""

    def __init__(self, session: Session):
        self._session = session

    def create(self, run_data: SyncRunCreate) -> SyncRun:
        """Persist a new sync run and return the mapped instance."""

        run = SyncRun(
            snapshot_type=run_data.snapshot_type,
            file_path=run_data.file_path,
            status=run_data.status,
            records_processed=run_data.records_processed,
            batches_committed=run_data.batches_committed,
            duration_ms=run_data.duration_ms,
            error_details=run_data.error_details,
        )
        self._session.add(run)
        self._session.flush()
        return run

    def latest(self) -> SyncRun | None:
        return self._session.scalar(
            select(SyncRun).order_by(SyncRun.created_at.desc(), SyncRun.id.desc()).limit(1)
        )


def persist_sync_run(run_data: SyncRunCreate, engine: Engine | None = None) -> SyncRun:
    """Create a sync run using a managed database session."""

    with session_scope(engine) as session:
        return SyncRunRepository(session).create(run_data)
