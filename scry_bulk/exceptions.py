"""Custom exceptions for scry-bulk."""

from __future__ import annotations

from collections.abc import Sequence


class ScryBulkError(Exception):
    """Base exception for all scry-bulk errors."""

    pass


class ConfigurationError(ScryBulkError):
    """Raised when configuration is invalid or missing."""

    pass


class CatalogFetchError(ScryBulkError):
    """Raised when the bulk-data catalog endpoint cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason

    @classmethod
    def from_status(cls, status_code: int, reason: str | None) -> CatalogFetchError:
        """Build the error for a non-200 catalog response."""

        return cls(f"HTTP {status_code}: {reason or 'Unknown'}", status_code=status_code, reason=reason)


class CatalogFormatError(ScryBulkError):
    """Raised when the catalog body is not the expected JSON document."""

    pass


class SnapshotTypeNotFoundError(ScryBulkError):
    """Raised when the requested snapshot type is absent from the catalog."""

    def __init__(self, requested: str, available: Sequence[str]) -> None:
        self.requested = requested
        self.available = list(available)
        available_display = ", ".join(self.available)
        super().__init__(
            f'Snapshot type "{requested}" not found. Available: {available_display}'
        )


class TooManyRedirectsError(ScryBulkError):
    """Raised when a request exceeds the configured redirect limit."""

    def __init__(self, url: str, max_redirects: int) -> None:
        super().__init__(f"Exceeded {max_redirects} redirects while requesting {url}")
        self.url = url
        self.max_redirects = max_redirects


class DownloadError(ScryBulkError):
    """Raised when a snapshot download fails."""

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class SnapshotNotFoundError(ScryBulkError):
    """Raised when no cached snapshot file is available for ingestion."""

    pass


class ParseError(ScryBulkError):
    """Raised when the snapshot stream contains malformed JSON."""

    def __init__(self, message: str, *, records_read: int = 0) -> None:
        super().__init__(message)
        self.records_read = records_read


class CommitError(ScryBulkError):
    """Raised when the persistence layer rejects a batch upsert."""

    def __init__(self, message: str, *, batch_size: int = 0) -> None:
        super().__init__(message)
        self.batch_size = batch_size
