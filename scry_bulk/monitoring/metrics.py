"""Prometheus metrics definitions for scry-bulk."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

BYTES_DOWNLOADED = Counter(
    "snapshot_bytes_downloaded_total",
    "Total snapshot bytes written to the local cache.",
    labelnames=("snapshot_type",),
)

CACHE_LOOKUPS = Counter(
    "snapshot_cache_lookups_total",
    "Snapshot cache lookups grouped by outcome.",
    labelnames=("snapshot_type", "outcome"),
)

RECORDS_PROCESSED = Counter(
    "ingestion_records_processed_total",
    "Total canonical records committed to the record store.",
)

BATCHES_COMMITTED = Counter(
    "ingestion_batches_committed_total",
    "Total batch upserts issued against the record store.",
    labelnames=("status",),
)

INGESTION_RUNS = Counter(
    "ingestion_runs_total",
    "Total ingestion runs by final status.",
    labelnames=("status",),
)

DOWNLOAD_DURATION = Histogram(
    "snapshot_download_duration_seconds",
    "Distribution of snapshot download durations in seconds.",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200, 3600),
)

RUN_DURATION = Histogram(
    "ingestion_run_duration_seconds",
    "Distribution of ingestion run durations in seconds.",
    buckets=(1, 10, 30, 60, 300, 600, 1800, 3600, 7200),
)


def record_bytes_downloaded(snapshot_type: str, size_bytes: int) -> None:
    """Increment the downloaded bytes counter."""

    BYTES_DOWNLOADED.labels(snapshot_type=snapshot_type).inc(max(size_bytes, 0))


def record_cache_lookup(snapshot_type: str, hit: bool) -> None:
    """Record whether a cache lookup reused an existing snapshot."""

    CACHE_LOOKUPS.labels(snapshot_type=snapshot_type, outcome="hit" if hit else "miss").inc()


def record_batch_committed(size: int) -> None:
    """Record a successful batch commit of ``size`` records."""

    BATCHES_COMMITTED.labels(status="success").inc()
    RECORDS_PROCESSED.inc(max(size, 0))


def record_batch_failed() -> None:
    BATCHES_COMMITTED.labels(status="error").inc()


def record_ingestion_run(status: str, duration_seconds: float) -> None:
    """Record the final status and duration of an ingestion run."""

    INGESTION_RUNS.labels(status=status).inc()
    RUN_DURATION.observe(max(duration_seconds, 0.0))


def observe_download_duration(duration_seconds: float) -> None:
    DOWNLOAD_DURATION.observe(max(duration_seconds, 0.0))
