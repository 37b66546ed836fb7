"""Declarative base plus the engine and session plumbing for the card store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.config import GlobalSettings, get_settings

DEFAULT_DATABASE_URL = "sqlite:///./scry_bulk.db"


class Base(DeclarativeBase):
    """Base class for the card store tables."""


_ENGINES: dict[str, Engine] = {}
_SESSION_FACTORIES: dict[Engine, sessionmaker[Session]] = {}
_LOCK = Lock()


def resolve_database_url(settings: GlobalSettings | None = None) -> str:
    settings = settings or get_settings()
    return settings.database_url or DEFAULT_DATABASE_URL


def engine_options(settings: GlobalSettings | None = None) -> tuple[str, dict[str, Any]]:
    """Return the URL and ``create_engine`` keyword arguments for ``settings``.

    SQLite connections are shared with the worker threads that write batches,
    so the same-thread check is disabled. An in-memory SQLite database is pinned
    to a single connection, otherwise every session would see an empty schema.
    Pool sizing from ``settings.database`` only applies to server databases.
    """

    settings = settings or get_settings()
    url = resolve_database_url(settings)

    if make_url(url).get_backend_name() == "sqlite":
        options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if make_url(url).database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return url, options

    pool = settings.database
    options = {
        "pool_size": pool.pool_size,
        "max_overflow": pool.max_overflow,
        "pool_timeout": pool.timeout,
        "pool_pre_ping": pool.pre_ping,
    }
    if pool.recycle_seconds > 0:
        options["pool_recycle"] = pool.recycle_seconds
    return url, options


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def create_schema(engine: Engine) -> None:
    """Create the ``cards`` and ``sync_runs`` tables when they are missing."""

    from .card import Card
    from .sync_run import SyncRun

    Base.metadata.create_all(bind=engine, tables=[Card.__table__, SyncRun.__table__])


def get_engine(settings: GlobalSettings | None = None) -> Engine:
    """Return the engine for the configured database URL, creating tables on first use."""

    url, options = engine_options(settings)
    with _LOCK:
        engine = _ENGINES.get(url)
        if engine is None:
            _ensure_sqlite_directory(url)
            engine = create_engine(url, **options)
            create_schema(engine)
            _ENGINES[url] = engine
            _SESSION_FACTORIES[engine] = sessionmaker(bind=engine, expire_on_commit=False)
        return engine


@contextmanager
def session_scope(engine: Engine | None = None) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    if engine is None:
        engine = get_engine()
    factory = _SESSION_FACTORIES.get(engine)
    session = factory() if factory is not None else Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose every cached engine so the next use reads settings afresh."""

    with _LOCK:
        for engine in _ENGINES.values():
            engine.dispose()
        _ENGINES.clear()
        _SESSION_FACTORIES.clear()
