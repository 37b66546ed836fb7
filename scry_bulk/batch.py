"""Bounded batching of canonical records into a record store."""

from __future__ import annotations

from .exceptions import CommitError
from .models.repository import RecordStore
from .monitoring.metrics import record_batch_committed, record_batch_failed
from .schemas.records import CanonicalRecord
from .utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "commit"})

DEFAULT_BATCH_SIZE = 500
DEFAULT_PROGRESS_LOG_INTERVAL = 10_000


class BatchCommitter:
    """Buffer records and hand them to a :class:`RecordStore` in fixed-size batches.

    Only one batch is ever in flight: ``add`` awaits the commit of a full buffer
    before returning, so callers that await it naturally stop producing while
    the store is busy.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        capacity: int = DEFAULT_BATCH_SIZE,
        progress_log_interval: int = DEFAULT_PROGRESS_LOG_INTERVAL,
    ) -> None:
        if capacity < 1:
            raise ValueError("Batch capacity must be at least 1")
        self.store = store
        self.capacity = capacity
        self.progress_log_interval = max(progress_log_interval, 0)
        self.committed = 0
        self.batches_committed = 0
        self._buffer: list[CanonicalRecord] = []
        self._next_milestone = self.progress_log_interval

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def add(self, record: CanonicalRecord) -> None:
        """Append ``record`` and commit the buffer once it reaches capacity."""

        self._buffer.append(record)
        if len(self._buffer) >= self.capacity:
            await self._commit()

    async def flush(self) -> None:
        """Commit whatever is buffered; does nothing when the buffer is empty."""

        if self._buffer:
            await self._commit()

    async def _commit(self) -> None:
        batch = self._buffer
        try:
            await self.store.upsert_many(batch)
        except Exception as exc:
            record_batch_failed()
            logger.error(
                "Failed to commit batch of %d records: %s",
                len(batch),
                exc,
                extra={"status": "error"},
            )
            raise CommitError(
                f"Failed to commit batch of {len(batch)} records: {exc}",
                batch_size=len(batch),
            ) from exc

        self._buffer = []
        self.committed += len(batch)
        self.batches_committed += 1
        record_batch_committed(len(batch))
        logger.debug("Committed batch of %d records", len(batch))

        while self.progress_log_interval and self.committed >= self._next_milestone:
            logger.info("Processed %d cards...", self._next_milestone)
            self._next_milestone += self.progress_log_interval
