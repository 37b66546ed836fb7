"""Incremental parser for snapshot files holding one huge top-level JSON array."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import ijson

from .exceptions import ParseError
from .utils.file_readers import DEFAULT_CHUNK_SIZE, async_stream_binary_file, normalize_chunk_size
from .utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "parse"})

_WHITESPACE = b" \t\r\n"


class StreamEventKind(str, Enum):
    """Kinds of events surfaced by :meth:`RecordStream.events`."""

    RECORD = "record"
    END = "end"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """A single event from the record stream."""

    kind: StreamEventKind
    record: Any = None
    records_read: int = 0


class RecordStream:
    """Lazy, forward-only, single-pass iterator over a snapshot's array elements.

    Bytes are pulled from disk one chunk at a time and pushed through ijson, so
    memory stays bounded by a chunk plus the records it completes. The stream
    can be paused by the consumer; while paused nothing is read and nothing is
    yielded. To start over, open a new stream.
    """

    def __init__(self, path: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.path = Path(path)
        self.chunk_size = normalize_chunk_size(chunk_size)
        self.records_read = 0
        self.bytes_read = 0
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._iterator: AsyncIterator[Any] | None = None

    @property
    def paused(self) -> bool:
        return not self._resume_event.is_set()

    def pause(self) -> None:
        """Stop reading and yielding until :meth:`resume` is called."""

        self._resume_event.clear()

    def resume(self) -> None:
        self._resume_event.set()

    def __aiter__(self) -> AsyncIterator[Any]:
        if self._iterator is not None:
            raise ParseError("RecordStream is single-pass; open a new stream to re-read")
        self._iterator = self._iterate()
        return self._iterator

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield explicit record events followed by one end-of-stream event.

        Malformed input raises :class:`ParseError` instead of yielding.
        """

        async for record in self:
            yield StreamEvent(StreamEventKind.RECORD, record=record, records_read=self.records_read)
        yield StreamEvent(StreamEventKind.END, records_read=self.records_read)

    async def _iterate(self) -> AsyncIterator[Any]:
        completed = ijson.sendable_list()
        parser = ijson.items_coro(completed, "item", use_float=True)
        pending: deque[Any] = deque()
        saw_array_start = False

        chunks = async_stream_binary_file(self.path, chunk_size=self.chunk_size)
        try:
            while True:
                await self._resume_event.wait()
                if pending:
                    self.records_read += 1
                    yield pending.popleft()
                    continue

                chunk = await anext(chunks, None)
                if chunk is None:
                    break
                self.bytes_read += len(chunk)

                if not saw_array_start:
                    stripped = chunk.lstrip(_WHITESPACE)
                    if not stripped:
                        continue
                    if not stripped.startswith(b"["):
                        raise ParseError(
                            f"Snapshot {self.path.name} does not contain a top-level JSON array"
                        )
                    saw_array_start = True

                try:
                    parser.send(chunk)
                except ijson.JSONError as exc:
                    raise ParseError(
                        f"Malformed JSON in {self.path.name} after {self.records_read} records: {exc}",
                        records_read=self.records_read,
                    ) from exc
                pending.extend(completed)
                del completed[:]

            if not saw_array_start:
                raise ParseError(f"Snapshot {self.path.name} is empty")

            try:
                parser.close()
            except ijson.JSONError as exc:
                raise ParseError(
                    f"Truncated JSON in {self.path.name} after {self.records_read} records: {exc}",
                    records_read=self.records_read,
                ) from exc
            pending.extend(completed)
            del completed[:]

            while pending:
                await self._resume_event.wait()
                self.records_read += 1
                yield pending.popleft()
        finally:
            await chunks.aclose()

        logger.debug(
            "Finished reading %d records (%d bytes) from %s",
            self.records_read,
            self.bytes_read,
            self.path,
        )
