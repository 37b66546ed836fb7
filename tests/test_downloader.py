"""Tests for streaming snapshot downloads."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from scry_bulk.downloader import SnapshotDownloader, format_megabytes
from scry_bulk.exceptions import DownloadError, TooManyRedirectsError
from scry_bulk.schemas.report import DownloadProgress
from scry_bulk.utils.retry import RetryConfig

SNAPSHOT_URI = "https://data.example.com/all-cards.json"


def build_downloader(
    transport: httpx.AsyncBaseTransport,
    **overrides: object,
) -> SnapshotDownloader:
    options: dict[str, object] = {
        "user_agent": "ScryBulkTests/1.0",
        "chunk_size": 10,
        "transport": transport,
    }
    options.update(overrides)
    return SnapshotDownloader(**options)  # type: ignore[arg-type]


def body_transport(body: bytes, status_code: int = 200) -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body, request=request)

    return httpx.MockTransport(handler)


class _BrokenStream(httpx.AsyncByteStream):
    """Yields some bytes and then fails mid-body."""

    async def __aiter__(self):
        yield b"[" + b"x" * 40
        raise httpx.ReadError("connection reset")

    async def aclose(self) -> None:
        return None


def test_format_megabytes() -> None:
    assert format_megabytes(1024 * 1024) == "1.00"
    assert format_megabytes(0) == "0.00"


@pytest.mark.asyncio
async def test_download_writes_body(tmp_path: Path) -> None:
    body = b'[{"name": "Lightning Bolt"}]'
    destination = tmp_path / "all_cards-20240101120000.json"

    result = await build_downloader(body_transport(body)).download(SNAPSHOT_URI, destination)

    assert result == destination
    assert destination.read_bytes() == body


@pytest.mark.asyncio
async def test_download_reports_progress_in_five_percent_steps(tmp_path: Path) -> None:
    body = b"x" * 1000
    updates: list[DownloadProgress] = []

    await build_downloader(body_transport(body)).download(
        SNAPSHOT_URI,
        tmp_path / "snapshot.json",
        on_progress=updates.append,
    )

    assert [update.percent for update in updates] == list(range(5, 101, 5))
    assert updates[-1].bytes_downloaded == 1000
    assert updates[-1].total_bytes == 1000


@pytest.mark.asyncio
async def test_download_follows_redirects(tmp_path: Path) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/all-cards.json":
            return httpx.Response(
                302,
                headers={"location": "https://cdn.example.com/files/all-cards.json"},
                request=request,
            )
        return httpx.Response(200, content=b"[]", request=request)

    destination = tmp_path / "snapshot.json"
    await build_downloader(httpx.MockTransport(handler)).download(SNAPSHOT_URI, destination)

    assert destination.read_bytes() == b"[]"


@pytest.mark.asyncio
async def test_download_caps_redirects(tmp_path: Path) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"location": str(request.url)}, request=request)

    destination = tmp_path / "snapshot.json"

    with pytest.raises(TooManyRedirectsError):
        await build_downloader(httpx.MockTransport(handler)).download(SNAPSHOT_URI, destination)

    assert not destination.exists()


@pytest.mark.asyncio
async def test_download_non_200_leaves_no_file(tmp_path: Path) -> None:
    destination = tmp_path / "snapshot.json"

    with pytest.raises(DownloadError, match="status 404") as exc_info:
        await build_downloader(body_transport(b"missing", status_code=404)).download(
            SNAPSHOT_URI, destination
        )

    assert exc_info.value.status_code == 404
    assert not destination.exists()


@pytest.mark.asyncio
async def test_download_failure_mid_stream_removes_partial_file(tmp_path: Path) -> None:
    """A body that breaks partway through must not leave a file behind."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-length": "1000"},
            stream=_BrokenStream(),
            request=request,
        )

    destination = tmp_path / "snapshot.json"

    with pytest.raises(DownloadError, match="connection reset"):
        await build_downloader(httpx.MockTransport(handler)).download(SNAPSHOT_URI, destination)

    assert not destination.exists()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_download_writes_to_part_file_until_complete(tmp_path: Path) -> None:
    """The destination only appears once the whole body is on disk."""

    destination = tmp_path / "all_cards-20240101120000.json"
    partial = tmp_path / "all_cards-20240101120000.json.part"
    seen: list[tuple[bool, bool]] = []

    def _observe(progress: DownloadProgress) -> None:
        seen.append((destination.exists(), partial.exists()))

    await build_downloader(body_transport(b"x" * 100)).download(
        SNAPSHOT_URI, destination, on_progress=_observe
    )

    assert seen
    assert all(state == (False, True) for state in seen)
    assert destination.read_bytes() == b"x" * 100
    assert not partial.exists()


@pytest.mark.asyncio
async def test_download_retries_transient_status(tmp_path: Path) -> None:
    statuses = iter([503, 200])

    async def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        return httpx.Response(status, content=b"[]" if status == 200 else b"", request=request)

    destination = tmp_path / "snapshot.json"
    downloader = build_downloader(
        httpx.MockTransport(handler),
        retry_config=RetryConfig(enabled=True, max_attempts=3, backoff_factor=0.01),
    )

    await downloader.download(SNAPSHOT_URI, destination)

    assert destination.read_bytes() == b"[]"


@pytest.mark.asyncio
async def test_download_replaces_existing_file(tmp_path: Path) -> None:
    destination = tmp_path / "snapshot.json"
    destination.write_bytes(b"stale contents that are longer than the new body")

    await build_downloader(body_transport(b"[]")).download(SNAPSHOT_URI, destination)

    assert destination.read_bytes() == b"[]"
