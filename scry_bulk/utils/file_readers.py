"""Utility helpers for chunked snapshot file reading."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from ..exceptions import ParseError
from .logging import setup_logger

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB

logger = setup_logger(__name__, context={"stage": "read"})


def normalize_chunk_size(value: Any, *, default: int = DEFAULT_CHUNK_SIZE) -> int:
    """Return a positive integer chunk size, falling back to default when invalid."""

    if value is None:
        return default

    try:
        chunk_size = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid chunk_size value '%s'; using default %d bytes.", value, default)
        return default

    if chunk_size <= 0:
        logger.warning(
            "chunk_size must be greater than zero (received %s); using default %d bytes.",
            value,
            default,
        )
        return default

    return chunk_size


async def async_stream_binary_file(
    file_path: str | Path,
    *,
    chunk_size: int,
) -> AsyncIterator[bytes]:
    """Asynchronously yield binary chunks using a background executor.

    A chunk is only read when the consumer asks for the next one.
    """

    loop = asyncio.get_running_loop()

    try:
        with open(file_path, "rb") as file_handle:
            while True:
                chunk = await loop.run_in_executor(None, file_handle.read, chunk_size)
                if not chunk:
                    break
                yield bytes(chunk)
    except OSError as exc:
        raise ParseError(f"Failed to read snapshot file: {exc}") from exc
