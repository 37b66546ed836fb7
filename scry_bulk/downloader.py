"""Stream snapshot bodies to local storage."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import httpx

from .exceptions import DownloadError
from .monitoring.metrics import observe_download_duration, record_bytes_downloaded
from .schemas.report import DownloadProgress
from .utils.config import GlobalSettings, get_settings
from .utils.file_readers import DEFAULT_CHUNK_SIZE, normalize_chunk_size
from .utils.http import build_client, next_redirect
from .utils.logging import setup_logger
from .utils.retry import RetryConfig, retry_operation

ProgressObserver = Callable[[DownloadProgress], None]

PROGRESS_STEP_PERCENT = 5
PARTIAL_SUFFIX = ".part"


def format_megabytes(num_bytes: int) -> str:
    return f"{num_bytes / 1024 / 1024:.2f}"


class _ProgressTracker:
    """Turn byte counts into at most one notification per 5% step."""

    def __init__(self, total_bytes: int | None, observer: ProgressObserver | None) -> None:
        self.total_bytes = total_bytes if total_bytes and total_bytes > 0 else None
        self.observer = observer
        self.bytes_downloaded = 0
        self.notifications = 0
        self._last_percent = 0

    def advance(self, size: int) -> DownloadProgress | None:
        self.bytes_downloaded += size
        if self.total_bytes is None:
            return None
        percent = min(self.bytes_downloaded * 100 // self.total_bytes, 100)
        if percent < self._last_percent + PROGRESS_STEP_PERCENT:
            return None
        self._last_percent = percent - percent % PROGRESS_STEP_PERCENT
        self.notifications += 1
        progress = DownloadProgress(
            bytes_downloaded=self.bytes_downloaded,
            total_bytes=self.total_bytes,
            percent=percent,
        )
        if self.observer is not None:
            self.observer(progress)
        return progress


def _content_length(response: httpx.Response) -> int | None:
    raw_value = response.headers.get("content-length")
    if raw_value is None:
        return None
    try:
        return int(raw_value)
    except ValueError:
        return None


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        SnapshotDownloader.logger.warning("Could not delete partial download: %s", path)


class SnapshotDownloader:
    """Download a snapshot to disk without holding the body in memory.

    The body is written next to the destination with a ``.part`` suffix and
    renamed into place once complete, so a failed or interrupted download never
    leaves a file at the destination path.
    """

    logger = setup_logger(__name__, context={"stage": "download"})

    def __init__(
        self,
        *,
        user_agent: str,
        timeout: float = 60.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_redirects: int = 5,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.chunk_size = normalize_chunk_size(chunk_size)
        self.max_redirects = max_redirects
        self.retry_config = retry_config or RetryConfig()
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: GlobalSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SnapshotDownloader:
        settings = settings or get_settings()
        return cls(
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
            chunk_size=settings.chunk_size,
            max_redirects=settings.max_redirects,
            retry_config=settings.retry,
            transport=transport,
        )

    async def download(
        self,
        uri: str,
        dest_path: str | Path,
        *,
        snapshot_type: str = "-",
        on_progress: ProgressObserver | None = None,
    ) -> Path:
        """
        Stream ``uri`` into ``dest_path``.

        Args:
            uri: Snapshot download URI
            dest_path: Destination file, replaced if present
            snapshot_type: Label used for logs and metrics
            on_progress: Called with a :class:`DownloadProgress` every 5%

        Returns:
            The destination path, once the file is flushed and closed

        Raises:
            DownloadError: On non-200 status, transport or write failure
            TooManyRedirectsError: If the redirect chain exceeds the limit
        """
        destination = Path(dest_path)
        started = time.monotonic()

        async def _attempt() -> Path:
            return await self._download_once(uri, destination, snapshot_type, on_progress)

        result = await retry_operation(
            _attempt,
            retry_config=self.retry_config,
            is_retryable=lambda exc: isinstance(exc, DownloadError) and exc.retryable,
            log=self.logger,
        )
        observe_download_duration(time.monotonic() - started)
        return result

    async def _download_once(
        self,
        uri: str,
        destination: Path,
        snapshot_type: str,
        on_progress: ProgressObserver | None,
    ) -> Path:
        context = {"snapshot_type": snapshot_type}
        self.logger.info("Downloading from: %s", uri, extra=context)
        self.logger.info("Saving to: %s", destination, extra=context)

        partial = destination.with_name(destination.name + PARTIAL_SUFFIX)
        opened = False
        try:
            async with build_client(
                user_agent=self.user_agent,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                url = uri
                hops = 0
                while True:
                    async with client.stream("GET", url) as response:
                        redirect_url = next_redirect(
                            response, hops=hops, max_redirects=self.max_redirects
                        )
                        if redirect_url is not None:
                            hops += 1
                            url = redirect_url
                            continue

                        if response.status_code != 200:
                            raise DownloadError(
                                f"Download failed with status {response.status_code}",
                                status_code=response.status_code,
                                retryable=self.retry_config.should_retry_status(
                                    response.status_code
                                ),
                            )

                        tracker = _ProgressTracker(_content_length(response), on_progress)
                        with open(partial, "wb") as handle:
                            opened = True
                            await self._write_body(response, handle, tracker, snapshot_type)
                        partial.replace(destination)
                        break
        except httpx.HTTPError as exc:
            if opened:
                _remove_partial(partial)
            raise DownloadError(f"Download failed: {exc}", retryable=True) from exc
        except OSError as exc:
            if opened:
                _remove_partial(partial)
            raise DownloadError(f"Failed to write snapshot to {destination}: {exc}") from exc
        except BaseException:
            if opened:
                _remove_partial(partial)
            raise

        self.logger.info(
            "File saved successfully (%s MB)",
            format_megabytes(tracker.bytes_downloaded),
            extra={**context, "status": "success"},
        )
        return destination

    async def _write_body(
        self,
        response: httpx.Response,
        handle: BinaryIO,
        tracker: _ProgressTracker,
        snapshot_type: str,
    ) -> None:
        async for chunk in response.aiter_bytes(self.chunk_size):
            await asyncio.to_thread(handle.write, chunk)
            record_bytes_downloaded(snapshot_type, len(chunk))
            progress = tracker.advance(len(chunk))
            if progress is not None:
                total = tracker.total_bytes or 0
                self.logger.info(
                    "Progress: %d%% (%s/%s MB)",
                    progress.percent,
                    format_megabytes(progress.bytes_downloaded),
                    format_megabytes(total),
                    extra={"snapshot_type": snapshot_type},
                )
        await asyncio.to_thread(handle.flush)
