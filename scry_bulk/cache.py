"""Local snapshot cache: naming, freshness checks and retention."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .monitoring.metrics import record_cache_lookup
from .schemas.snapshot import SnapshotDescriptor
from .utils.config import GlobalSettings, get_settings
from .utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "cache"})

SNAPSHOT_EXTENSION = ".json"
_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass(frozen=True, slots=True)
class CachedFile:
    """A previously downloaded snapshot on local storage."""

    path: Path
    type: str | None
    modified_at: datetime


@dataclass(frozen=True, slots=True)
class CacheTarget:
    """Where a snapshot lives locally and whether it has to be fetched."""

    path: Path
    should_download: bool
    age_hours: float | None = None


def snapshot_filename(snapshot_type: str, updated_at: datetime) -> str:
    """Return ``<type>-<YYYYMMDDHHMMSS>.json`` with the timestamp rendered in UTC."""

    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    stamp = updated_at.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)
    return f"{snapshot_type}-{stamp}{SNAPSHOT_EXTENSION}"


def snapshot_type_from_name(name: str) -> str | None:
    stem = name[: -len(SNAPSHOT_EXTENSION)] if name.endswith(SNAPSHOT_EXTENSION) else name
    snapshot_type, separator, stamp = stem.rpartition("-")
    if not separator or len(stamp) != 14 or not stamp.isdigit():
        return None
    return snapshot_type


class CacheStore:
    """File cache rooted at an explicit directory.

    The directory is assumed to have a single writer; concurrent ingestion runs
    against the same cache directory are not coordinated.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        freshness_hours: float = 24.0,
        retention: int = 2,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.freshness_hours = freshness_hours
        self.retention = retention

    @classmethod
    def from_settings(cls, settings: GlobalSettings | None = None) -> CacheStore:
        settings = settings or get_settings()
        return cls(
            settings.cache_dir,
            freshness_hours=settings.freshness_hours,
            retention=settings.retention,
        )

    def ensure_directory(self) -> Path:
        """Create the cache root (and parents) when missing."""

        if not self.cache_dir.is_dir():
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created cache directory: %s", self.cache_dir)
        return self.cache_dir

    def path_for(self, snapshot_type: str, descriptor: SnapshotDescriptor) -> Path:
        return self.ensure_directory() / snapshot_filename(snapshot_type, descriptor.updated_at)

    def resolve_target(self, snapshot_type: str, descriptor: SnapshotDescriptor) -> CacheTarget:
        """Decide whether the snapshot described by ``descriptor`` must be downloaded."""

        path = self.path_for(snapshot_type, descriptor)
        context = {"snapshot_type": snapshot_type}

        try:
            modified = path.stat().st_mtime
        except FileNotFoundError:
            record_cache_lookup(snapshot_type, hit=False)
            return CacheTarget(path=path, should_download=True)

        age_hours = max(time.time() - modified, 0.0) / 3600
        if age_hours < self.freshness_hours:
            logger.info(
                "Recent file already exists (%.1f hours old): %s",
                age_hours,
                path.name,
                extra={**context, "status": "hit"},
            )
            record_cache_lookup(snapshot_type, hit=True)
            return CacheTarget(path=path, should_download=False, age_hours=age_hours)

        logger.info(
            "File exists but is %.1f hours old, downloading fresh copy",
            age_hours,
            extra={**context, "status": "stale"},
        )
        record_cache_lookup(snapshot_type, hit=False)
        return CacheTarget(path=path, should_download=True, age_hours=age_hours)

    def list_cached(self, snapshot_type: str | None = None) -> list[CachedFile]:
        """Return cached snapshots, newest first, optionally limited to one type."""

        directory = self.ensure_directory()
        prefix = f"{snapshot_type}-" if snapshot_type else ""
        cached: list[CachedFile] = []
        for entry in directory.iterdir():
            name = entry.name
            if not name.endswith(SNAPSHOT_EXTENSION) or not name.startswith(prefix):
                continue
            if not entry.is_file():
                continue
            modified_at = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
            cached.append(
                CachedFile(
                    path=entry,
                    type=snapshot_type or snapshot_type_from_name(name),
                    modified_at=modified_at,
                )
            )
        cached.sort(key=lambda item: item.modified_at, reverse=True)
        return cached

    def prune(
        self,
        snapshot_type: str,
        keep: int | None = None,
        *,
        exclude: Path | None = None,
    ) -> list[Path]:
        """Delete all but the newest ``keep`` snapshots of ``snapshot_type``.

        ``exclude`` is left alone and does not count towards ``keep``.

        Failures only affect disk hygiene, so they are logged and swallowed.

        Returns:
            Paths that were removed
        """
        keep = self.retention if keep is None else keep
        removed: list[Path] = []
        try:
            candidates = [
                cached for cached in self.list_cached(snapshot_type) if cached.path != exclude
            ]
            stale = candidates[max(keep, 0):]
            for cached in stale:
                cached.path.unlink()
                removed.append(cached.path)
                logger.info(
                    "Deleted old file: %s",
                    cached.path.name,
                    extra={"snapshot_type": snapshot_type},
                )
        except OSError as exc:
            logger.warning(
                "Could not clean up old files: %s",
                exc,
                extra={"snapshot_type": snapshot_type, "status": "warning"},
            )
        return removed

    def make_room(self, snapshot_type: str, target: Path) -> list[Path]:
        """Prune so that ``target`` plus the survivors stay within retention."""

        return self.prune(snapshot_type, keep=self.retention - 1, exclude=target)

    def latest_file(self) -> Path | None:
        """Return the most recently modified snapshot of any type, if any."""

        if not self.cache_dir.is_dir():
            return None
        cached = self.list_cached()
        return cached[0].path if cached else None
