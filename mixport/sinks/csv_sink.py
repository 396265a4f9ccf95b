"""Schema-less CSV sink.

Column names cannot be known before the whole stream has been seen, so each
record is written as one ``event_id,key,value`` row per property. Grouping
rows by ``event_id`` reassembles the event.
"""

from __future__ import annotations

import asyncio
import csv
import io
import typing as typ

import msgspec

from mixport.mixpanel.models import EVENT_ID_KEY

from .errors import SinkError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from mixport.mixpanel.models import EventValue

    from .base import RecordReceiver

CSV_HEADER = ("event_id", "key", "value")

_json_encoder = msgspec.json.Encoder()


def format_value(value: EventValue) -> str:
    """Render a property value as a CSV cell.

    ``None`` becomes an empty cell, booleans are lower-case, and lists and
    maps are written as compact JSON.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | dict):
        return _json_encoder.encode(value).decode("utf-8")
    return str(value)


def csv_row(values: cabc.Iterable[str]) -> str:
    """Return ``values`` rendered as one newline-terminated CSV line."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(values)
    return buffer.getvalue()


class CSVSink:
    """Write every record as ``event_id,key,value`` rows to ``stream``.

    Rows are formatted on the event loop; each record's rows are written in
    a single call from a worker thread.
    """

    name = "csv"

    def __init__(self, stream: typ.TextIO) -> None:
        """Bind the sink to an open text stream."""
        self._stream = stream
        self.rows_written = 0

    async def consume(self, records: RecordReceiver) -> None:
        """Write the header, then one row per non-id key of each record."""
        await asyncio.to_thread(self._stream.write, csv_row(CSV_HEADER))
        async for record in records:
            event_id = record.get(EVENT_ID_KEY)
            if not isinstance(event_id, str):
                raise SinkError.unsupported_record(self.name, "missing event id")
            rows = [
                csv_row((event_id, key, format_value(value)))
                for key, value in record.items()
                if key != EVENT_ID_KEY
            ]
            await asyncio.to_thread(self._stream.write, "".join(rows))
            self.rows_written += len(rows)
        await asyncio.to_thread(self._stream.flush)
