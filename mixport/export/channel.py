"""Bounded, closable record channels.

A :class:`RecordChannel` connects exactly one producer to exactly one
consumer. Sends wait while the buffer is full, which is how a slow sink
pushes back on the multiplexer and, through it, on the HTTP download.
Closing enqueues an end-of-stream marker behind any buffered records, so the
consumer always sees every record sent before the close.
"""

from __future__ import annotations

import asyncio
import typing as typ

if typ.TYPE_CHECKING:
    from mixport.mixpanel.models import EventRecord

DEFAULT_BUFFER_SIZE = 1000


class ChannelClosedError(RuntimeError):
    """Raised when sending on a channel that has been closed."""

    @classmethod
    def for_channel(cls, name: str) -> ChannelClosedError:
        """Return an error naming the closed channel."""
        return cls(f"send on closed channel: {name or '<unnamed>'}")


class _EndOfStream:
    """Marker queued behind the last record."""


_END = _EndOfStream()


class RecordChannel:
    """Single-producer, single-consumer queue of records with close semantics.

    Iterate the channel with ``async for`` to receive records until it is
    closed and drained.
    """

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE, *, name: str = "") -> None:
        """Create a channel holding at most ``buffer_size`` pending records."""
        if buffer_size < 1:
            msg = f"buffer_size must be positive, got: {buffer_size}"
            raise ValueError(msg)
        self.name = name
        self._queue: asyncio.Queue[EventRecord | _EndOfStream] = asyncio.Queue(
            maxsize=buffer_size
        )
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        """Whether the producer has closed the channel."""
        return self._closed

    @property
    def drained(self) -> bool:
        """Whether the consumer has received the end-of-stream marker."""
        return self._drained

    def qsize(self) -> int:
        """Return the number of buffered items, including the close marker."""
        return self._queue.qsize()

    async def send(self, record: EventRecord) -> None:
        """Enqueue ``record``, waiting while the buffer is full."""
        if self._closed:
            raise ChannelClosedError.for_channel(self.name)
        await self._queue.put(record)

    async def close(self) -> None:
        """Mark the end of the stream; later closes are no-ops."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_END)

    def abort(self) -> int:
        """Close without waiting, dropping buffered records.

        Used when the producer dies and nobody may be left to make room for
        the close marker. Returns the number of records dropped.
        """
        if self._closed and self._drained:
            return 0
        dropped = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if not isinstance(item, _EndOfStream):
                dropped += 1
        self._closed = True
        self._queue.put_nowait(_END)
        return dropped

    async def discard_remaining(self) -> int:
        """Receive and drop records until the channel is closed.

        Returns the number of records discarded.
        """
        discarded = 0
        async for _ in self:
            discarded += 1
        return discarded

    def __aiter__(self) -> RecordChannel:
        """Return the channel itself as the async iterator."""
        return self

    async def __anext__(self) -> EventRecord:
        """Return the next record, or stop once the channel is drained."""
        if self._drained:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            self._drained = True
            raise StopAsyncIteration
        return item
