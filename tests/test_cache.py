"""Tests for the local snapshot cache."""

from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from scry_bulk.cache import CacheStore, snapshot_filename, snapshot_type_from_name
from scry_bulk.schemas.snapshot import SnapshotDescriptor


def _descriptor(updated_at: datetime, snapshot_type: str = "all_cards") -> SnapshotDescriptor:
    return SnapshotDescriptor(
        type=snapshot_type,
        updated_at=updated_at,
        download_uri="https://data.example.com/all-cards.json",
    )


def _touch(path: Path, *, age_hours: float) -> Path:
    path.write_text("[]", encoding="utf-8")
    stamp = time.time() - age_hours * 3600
    os.utime(path, (stamp, stamp))
    return path


def test_snapshot_filename_uses_utc_timestamp() -> None:
    updated = datetime(2024, 1, 1, 14, 30, 5, tzinfo=timezone(timedelta(hours=2)))

    assert snapshot_filename("all_cards", updated) == "all_cards-20240101123005.json"


def test_snapshot_type_from_name() -> None:
    assert snapshot_type_from_name("all_cards-20240101123005.json") == "all_cards"
    assert snapshot_type_from_name("default-cards-20240101123005.json") == "default-cards"
    assert snapshot_type_from_name("notes.json") is None


def test_resolve_target_creates_directory(tmp_path: Path) -> None:
    cache_dir = tmp_path / "nested" / "bulk"
    store = CacheStore(cache_dir)

    target = store.resolve_target("all_cards", _descriptor(datetime(2024, 1, 1, tzinfo=timezone.utc)))

    assert cache_dir.is_dir()
    assert target.should_download is True
    assert target.path.parent == cache_dir


def test_resolve_target_reuses_fresh_file(tmp_path: Path) -> None:
    """A file younger than the freshness window short-circuits the download."""

    store = CacheStore(tmp_path, freshness_hours=24)
    descriptor = _descriptor(datetime(2024, 1, 1, 12, tzinfo=timezone.utc))
    _touch(store.path_for("all_cards", descriptor), age_hours=1)

    target = store.resolve_target("all_cards", descriptor)

    assert target.should_download is False
    assert target.age_hours == pytest.approx(1, abs=0.1)


def test_resolve_target_refreshes_stale_file(tmp_path: Path) -> None:
    store = CacheStore(tmp_path, freshness_hours=24)
    descriptor = _descriptor(datetime(2024, 1, 1, 12, tzinfo=timezone.utc))
    _touch(store.path_for("all_cards", descriptor), age_hours=30)

    target = store.resolve_target("all_cards", descriptor)

    assert target.should_download is True
    assert target.age_hours == pytest.approx(30, abs=0.1)


def test_list_cached_filters_by_type_newest_first(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    oldest = _touch(tmp_path / "all_cards-20240101000000.json", age_hours=3)
    newest = _touch(tmp_path / "all_cards-20240103000000.json", age_hours=1)
    _touch(tmp_path / "oracle_cards-20240102000000.json", age_hours=2)
    _touch(tmp_path / "all_cards_extra-20240102000000.json", age_hours=2)
    (tmp_path / "README.txt").write_text("ignored", encoding="utf-8")

    cached = store.list_cached("all_cards")

    assert [item.path for item in cached] == [newest, oldest]
    assert all(item.type == "all_cards" for item in cached)


def test_prune_keeps_newest_files(tmp_path: Path) -> None:
    """Only the newest ``retention`` files of the type survive."""

    store = CacheStore(tmp_path, retention=2)
    files = [
        _touch(tmp_path / f"all_cards-2024010{day}000000.json", age_hours=10 - day)
        for day in range(1, 5)
    ]
    other = _touch(tmp_path / "oracle_cards-20240101000000.json", age_hours=50)

    removed = store.prune("all_cards")

    assert sorted(removed) == sorted(files[:2])
    remaining = sorted(path.name for path in tmp_path.iterdir())
    assert remaining == sorted([files[2].name, files[3].name, other.name])


def test_make_room_leaves_space_for_incoming_snapshot(tmp_path: Path) -> None:
    """Survivors plus the snapshot about to be written never exceed retention."""

    store = CacheStore(tmp_path, retention=2)
    stale_target = _touch(tmp_path / "all_cards-20240101000000.json", age_hours=30)
    files = [
        _touch(tmp_path / f"all_cards-2023120{day}000000.json", age_hours=10 - day)
        for day in range(1, 4)
    ]

    removed = store.make_room("all_cards", stale_target)

    assert sorted(removed) == sorted(files[:2])
    remaining = sorted(path.name for path in tmp_path.iterdir())
    assert remaining == sorted([stale_target.name, files[2].name])


def test_prune_swallows_filesystem_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = CacheStore(tmp_path, retention=1)
    _touch(tmp_path / "all_cards-20240101000000.json", age_hours=2)
    _touch(tmp_path / "all_cards-20240102000000.json", age_hours=1)

    def _fail(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(Path, "unlink", _fail)

    assert store.prune("all_cards") == []


def test_latest_file_spans_types(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    _touch(tmp_path / "all_cards-20240101000000.json", age_hours=5)
    newest = _touch(tmp_path / "oracle_cards-20240102000000.json", age_hours=1)

    assert store.latest_file() == newest


def test_latest_file_missing_directory(tmp_path: Path) -> None:
    store = CacheStore(tmp_path / "absent")

    assert store.latest_file() is None
    assert not (tmp_path / "absent").exists()


def test_in_progress_downloads_are_ignored(tmp_path: Path) -> None:
    store = CacheStore(tmp_path)
    complete = _touch(tmp_path / "all_cards-20240101000000.json", age_hours=5)
    _touch(tmp_path / "all_cards-20240102000000.json.part", age_hours=0)

    assert store.latest_file() == complete
    assert [cached.path for cached in store.list_cached("all_cards")] == [complete]
