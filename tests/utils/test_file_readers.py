"""Tests for streaming file reader helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from scry_bulk.exceptions import ParseError
from scry_bulk.utils.file_readers import (
    DEFAULT_CHUNK_SIZE,
    async_stream_binary_file,
    normalize_chunk_size,
)


@pytest.mark.asyncio
async def test_async_stream_binary_file_preserves_content(tmp_path: Path) -> None:
    """Chunked reads should reconstruct the original bytes."""

    file_path = tmp_path / "sample.bin"
    data = b"0123456789" * 7
    file_path.write_bytes(data)

    chunks = [chunk async for chunk in async_stream_binary_file(file_path, chunk_size=16)]

    assert b"".join(chunks) == data
    assert all(len(chunk) <= 16 for chunk in chunks)
    assert len(chunks) == 5


@pytest.mark.asyncio
async def test_async_stream_binary_file_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="Failed to read snapshot file"):
        async for _ in async_stream_binary_file(tmp_path / "absent.bin", chunk_size=4):
            pass


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, DEFAULT_CHUNK_SIZE), ("2048", 2048), ("abc", DEFAULT_CHUNK_SIZE), (0, DEFAULT_CHUNK_SIZE), (-5, DEFAULT_CHUNK_SIZE), (64, 64)],
)
def test_normalize_chunk_size(value, expected) -> None:
    assert normalize_chunk_size(value) == expected
