"""Line-delimited JSON sink."""

from __future__ import annotations

import asyncio
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from .base import RecordReceiver


class JSONSink:
    """Write each record as one compact JSON object per line.

    Records are encoded on the event loop; the write itself runs in a worker
    thread, since the stream may be a gzip file or a named pipe.
    """

    name = "json"

    def __init__(self, stream: typ.TextIO) -> None:
        """Bind the sink to an open text stream."""
        self._stream = stream
        self._encoder = msgspec.json.Encoder()
        self.records_written = 0

    async def consume(self, records: RecordReceiver) -> None:
        """Encode records until the stream ends, then flush."""
        async for record in records:
            line = self._encoder.encode(record).decode("utf-8") + "\n"
            await asyncio.to_thread(self._stream.write, line)
            self.records_written += 1
        await asyncio.to_thread(self._stream.flush)
