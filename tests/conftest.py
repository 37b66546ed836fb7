"""Pytest configuration - no path manipulation, rely on proper package installation."""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from scry_bulk.models.base import reset_engine
from scry_bulk.utils.config import get_service_configuration, get_settings


@pytest.fixture(autouse=True)
def _isolated_environment(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path_factory: pytest.TempPathFactory,
) -> Iterator[None]:
    """Point the database and profile templates at throwaway locations."""

    if os.getenv("SCRY_DATABASE_URL") is None:
        db_path = tmp_path_factory.mktemp("sqlite-db") / "cards.sqlite"
        monkeypatch.setenv("SCRY_DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("SCRY_CONFIG_DIR", str(tmp_path_factory.mktemp("config")))

    get_settings(reload=True)
    get_service_configuration(reload=True)
    yield
    reset_engine()
    get_settings(reload=True)


@pytest.fixture
def card_payload() -> Callable[..., dict[str, Any]]:
    """Factory building raw catalog card objects."""

    def _build(name: str = "Lightning Bolt", **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "object": "card",
            "id": "e3285e6b-3e79-4d7c-bf96-d920f973b122",
            "oracle_id": "4457ed35-7c10-48c8-9776-456485fdf070",
            "name": name,
            "lang": "en",
            "released_at": "2010-07-16",
            "layout": "normal",
            "image_uris": {
                "small": "https://cards.example/small/bolt.jpg",
                "normal": "https://cards.example/normal/bolt.jpg",
            },
            "mana_cost": "{R}",
            "cmc": 1.0,
            "type_line": "Instant",
            "oracle_text": "Lightning Bolt deals 3 damage to any target.",
            "colors": ["R"],
            "color_identity": ["R"],
            "keywords": [],
            "set": "m11",
            "set_name": "Magic 2011",
            "collector_number": "149",
            "rarity": "common",
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def write_snapshot(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a list of raw cards as a snapshot file."""

    def _write(
        cards: list[dict[str, Any]],
        *,
        name: str = "all_cards-20240101120000.json",
        directory: Path | None = None,
    ) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_text(json.dumps(cards), encoding="utf-8")
        return path

    return _write
