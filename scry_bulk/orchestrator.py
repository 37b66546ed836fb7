"""Sequence catalog, cache, download, streaming and commit into one run."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from pathlib import Path

import httpx

from .batch import DEFAULT_BATCH_SIZE, DEFAULT_PROGRESS_LOG_INTERVAL, BatchCommitter
from .cache import CacheStore, snapshot_type_from_name
from .catalog import SnapshotCatalogClient
from .downloader import ProgressObserver, SnapshotDownloader
from .exceptions import SnapshotNotFoundError
from .models.base import get_engine
from .models.repository import RecordStore, SqlAlchemyRecordStore, SyncRunCreate, persist_sync_run
from .monitoring.metrics import record_ingestion_run
from .normalizer import normalize
from .parser import RecordStream
from .schemas.report import IngestionReport
from .utils.config import GlobalSettings, get_settings
from .utils.file_readers import DEFAULT_CHUNK_SIZE
from .utils.logging import log_ingestion_run, setup_logger

logger = setup_logger(__name__, context={"stage": "orchestrator"})


class RunState(str, Enum):
    """Lifecycle of one orchestrated ingestion."""

    IDLE = "idle"
    CATALOGED = "cataloged"
    DOWNLOADED = "downloaded"
    LOCATED = "located"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({RunState.COMPLETED, RunState.FAILED})


class IngestionOrchestrator:
    """Drive a snapshot from the remote catalog into the record store.

    Every step runs in a single cooperative flow. Errors move the orchestrator
    to ``FAILED`` and propagate unchanged; retries belong to the network
    components, not to this layer.
    """

    def __init__(
        self,
        *,
        catalog: SnapshotCatalogClient,
        cache: CacheStore,
        downloader: SnapshotDownloader,
        store: RecordStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_log_interval: int = DEFAULT_PROGRESS_LOG_INTERVAL,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        default_snapshot_type: str = "all_cards",
        record_runs: bool = False,
        on_progress: ProgressObserver | None = None,
    ) -> None:
        self.catalog = catalog
        self.cache = cache
        self.downloader = downloader
        self.store = store
        self.batch_size = batch_size
        self.progress_log_interval = progress_log_interval
        self.chunk_size = chunk_size
        self.default_snapshot_type = default_snapshot_type
        self.record_runs = record_runs
        self.on_progress = on_progress
        self._state = RunState.IDLE
        self._downloaded = False

    @classmethod
    def from_settings(
        cls,
        settings: GlobalSettings | None = None,
        *,
        store: RecordStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> IngestionOrchestrator:
        """Build an orchestrator wired from :class:`GlobalSettings`."""

        settings = settings or get_settings()
        return cls(
            catalog=SnapshotCatalogClient.from_settings(settings, transport=transport),
            cache=CacheStore.from_settings(settings),
            downloader=SnapshotDownloader.from_settings(settings, transport=transport),
            store=store if store is not None else SqlAlchemyRecordStore(get_engine(settings)),
            batch_size=settings.batch_size,
            progress_log_interval=settings.progress_log_interval,
            chunk_size=settings.chunk_size,
            default_snapshot_type=settings.default_snapshot_type,
            record_runs=settings.record_runs,
            on_progress=on_progress,
        )

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, new_state: RunState) -> None:
        if new_state is self._state:
            return
        logger.info(
            "State %s -> %s",
            self._state.value,
            new_state.value,
            extra={"status": new_state.value},
        )
        self._state = new_state

    def _fail(self) -> None:
        if self._state not in _TERMINAL_STATES:
            self._transition(RunState.FAILED)

    def _begin(self) -> None:
        if self._state in _TERMINAL_STATES:
            self._state = RunState.IDLE
            self._downloaded = False

    async def download_snapshot(self, snapshot_type: str | None = None) -> Path:
        """Ensure a fresh copy of ``snapshot_type`` exists locally and return its path.

        A fresh cached file short-circuits the download. Otherwise older files
        of the same type are pruned first and then the snapshot is fetched.
        """

        snapshot_type = snapshot_type or self.default_snapshot_type
        self._begin()
        context = {"snapshot_type": snapshot_type}
        try:
            logger.info("Fetching bulk data catalog...", extra=context)
            catalog = await self.catalog.fetch_catalog()
            descriptor = self.catalog.select_by_type(catalog, snapshot_type)
            self._transition(RunState.CATALOGED)
            logger.info(
                "Found %s (updated %s, %d bytes)",
                descriptor.name or descriptor.type,
                descriptor.updated_at.isoformat(),
                descriptor.size_bytes,
                extra=context,
            )

            target = self.cache.resolve_target(snapshot_type, descriptor)
            if not target.should_download:
                return target.path

            self.cache.make_room(snapshot_type, target.path)
            path = await self.downloader.download(
                descriptor.download_uri,
                target.path,
                snapshot_type=snapshot_type,
                on_progress=self.on_progress,
            )
        except Exception:
            self._fail()
            raise

        self._downloaded = True
        self._transition(RunState.DOWNLOADED)
        return path

    def locate_latest(self) -> Path:
        """Return the newest cached snapshot of any type."""

        path = self.cache.latest_file()
        if path is None:
            self._fail()
            raise SnapshotNotFoundError(f"No bulk data files found in {self.cache.cache_dir}")
        logger.info("Using bulk data file: %s", path.name)
        return path

    async def ingest_file(self, path: str | Path) -> IngestionReport:
        """Stream ``path`` through normalization into the record store."""

        self._begin()
        path = Path(path)
        snapshot_type = snapshot_type_from_name(path.name)
        context = {"snapshot_type": snapshot_type or "-"}
        started = time.monotonic()
        try:
            if not path.is_file():
                raise SnapshotNotFoundError(f"Snapshot file not found: {path}")
            self._transition(RunState.LOCATED)

            stream = RecordStream(path, chunk_size=self.chunk_size)
            committer = BatchCommitter(
                self.store,
                capacity=self.batch_size,
                progress_log_interval=self.progress_log_interval,
            )
            self._transition(RunState.STREAMING)
            logger.info("Processing cards...", extra=context)

            async for raw in stream:
                record = normalize(raw)
                stream.pause()
                try:
                    await committer.add(record)
                finally:
                    stream.resume()
            await committer.flush()
        except Exception:
            self._fail()
            raise

        self._transition(RunState.COMPLETED)
        logger.info(
            "Successfully processed %d cards",
            committer.committed,
            extra={**context, "status": "success"},
        )
        return IngestionReport(
            snapshot_type=snapshot_type,
            path=str(path),
            records_processed=committer.committed,
            batches_committed=committer.batches_committed,
            downloaded=self._downloaded,
            duration_ms=int((time.monotonic() - started) * 1000),
            state=self._state.value,
        )

    async def sync(self, path: str | Path | None = None) -> IngestionReport:
        """Ingest ``path``, or the newest cached snapshot when none is given."""

        self._begin()
        started = time.monotonic()
        target = Path(path) if path is not None else None
        try:
            if target is None:
                target = self.locate_latest()
            report = await self.ingest_file(target)
        except Exception as exc:
            await self._finish_run(started, target, status="error", error=exc)
            raise

        await self._finish_run(started, target, status="success", report=report)
        return report

    async def run(self, snapshot_type: str | None = None) -> IngestionReport:
        """Download (or reuse) a snapshot and ingest it."""

        snapshot_type = snapshot_type or self.default_snapshot_type
        self._begin()
        started = time.monotonic()
        target: Path | None = None
        try:
            target = await self.download_snapshot(snapshot_type)
            report = await self.ingest_file(target)
        except Exception as exc:
            await self._finish_run(
                started, target, status="error", error=exc, snapshot_type=snapshot_type
            )
            raise

        await self._finish_run(
            started, target, status="success", report=report, snapshot_type=snapshot_type
        )
        return report

    async def _finish_run(
        self,
        started: float,
        path: Path | None,
        *,
        status: str,
        report: IngestionReport | None = None,
        error: BaseException | None = None,
        snapshot_type: str | None = None,
    ) -> None:
        elapsed = time.monotonic() - started
        duration_ms = int(elapsed * 1000)
        if snapshot_type is None and path is not None:
            snapshot_type = snapshot_type_from_name(path.name)

        record_ingestion_run(status, elapsed)
        extra_context: dict[str, object] = {"path": str(path) if path else None}
        if report is not None:
            extra_context["records_processed"] = report.records_processed
            extra_context["batches_committed"] = report.batches_committed
        if error is not None:
            extra_context["error"] = str(error)
        log_ingestion_run(logger, snapshot_type or "-", duration_ms, status, **extra_context)

        if not self.record_runs:
            return

        error_details = None
        if error is not None:
            error_details = {"error_type": error.__class__.__name__, "message": str(error)}
        run_data = SyncRunCreate(
            snapshot_type=snapshot_type,
            file_path=str(path) if path else None,
            status=status,
            records_processed=report.records_processed if report else 0,
            batches_committed=report.batches_committed if report else 0,
            duration_ms=duration_ms,
            error_details=error_details,
        )
        engine = self.store.engine if isinstance(self.store, SqlAlchemyRecordStore) else None
        await asyncio.to_thread(persist_sync_run, run_data, engine)
