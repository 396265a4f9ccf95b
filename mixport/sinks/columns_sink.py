"""CSV sink with fixed, per-event columns.

Useful when only a subset of an event's properties matters, or when the rows
are loaded into tables whose columns are known ahead of time. Each event
type is written to its own stream; events without a definition are dropped.

The definitions file is a JSON object mapping event names to column lists::

    {"signup": ["distinct_id", "plan"], "login": ["distinct_id", "time"]}

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ
from pathlib import Path

import msgspec

from mixport.mixpanel.models import EVENT_KEY

from .csv_sink import csv_row, format_value
from .errors import SinkError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from mixport.mixpanel.models import EventRecord

    from .base import RecordReceiver

type ColumnDefinitions = dict[str, list[str]]


@dc.dataclass(slots=True)
class EventColumnDef:
    """Destination stream and column order for one event type."""

    stream: typ.TextIO
    columns: tuple[str, ...]
    rows_written: int = 0

    async def write_header(self) -> None:
        """Write the column names as the first row."""
        await asyncio.to_thread(self.stream.write, csv_row(self.columns))

    async def write(self, record: EventRecord) -> None:
        """Write the configured columns of ``record``; absent values are empty."""
        row = csv_row(format_value(record.get(column)) for column in self.columns)
        await asyncio.to_thread(self.stream.write, row)
        self.rows_written += 1


class ColumnSink:
    """Route each record to its event's :class:`EventColumnDef`."""

    name = "columns"

    def __init__(self, definitions: cabc.Mapping[str, EventColumnDef]) -> None:
        """Bind the sink to one column definition per event name."""
        self._definitions = dict(definitions)
        self.dropped = 0

    @property
    def definitions(self) -> cabc.Mapping[str, EventColumnDef]:
        """Column definitions keyed by event name."""
        return self._definitions

    async def consume(self, records: RecordReceiver) -> None:
        """Write headers, route every record, then flush every stream."""
        for definition in self._definitions.values():
            await definition.write_header()

        async for record in records:
            event = record.get(EVENT_KEY)
            definition = (
                self._definitions.get(event) if isinstance(event, str) else None
            )
            if definition is None:
                self.dropped += 1
                continue
            await definition.write(record)

        for definition in self._definitions.values():
            await asyncio.to_thread(definition.stream.flush)


def load_column_definitions(path: Path | str) -> ColumnDefinitions:
    """Read the ``{event: [columns...]}`` definitions file at ``path``.

    Raises
    ------
    SinkError
        If the file cannot be read or does not have the expected shape.

    """
    path_obj = Path(path)
    try:
        raw = path_obj.read_bytes()
    except OSError as exc:
        raise SinkError.column_definitions(path_obj, str(exc)) from exc
    try:
        return msgspec.json.decode(raw, type=dict[str, list[str]])
    except msgspec.DecodeError as exc:
        raise SinkError.column_definitions(path_obj, str(exc)) from exc
