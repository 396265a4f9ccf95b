"""Sink protocol consumed by the export multiplexer.

A sink is bound to its destination when constructed and exposes a single
entry point, :meth:`EventSink.consume`, which receives records until the
stream ends. Releasing the destination afterwards is the job of the
registration's ``cleanup`` action, run by the sink's own task.

Usage
-----
>>> from mixport.sinks.base import EventSink
>>> from mixport.sinks.json_sink import JSONSink
>>> isinstance(JSONSink(io.StringIO()), EventSink)
True

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from mixport.mixpanel.models import EventRecord

type RecordReceiver = cabc.AsyncIterable[EventRecord]
type Cleanup = cabc.Callable[[], cabc.Awaitable[None]]


@typ.runtime_checkable
class EventSink(typ.Protocol):
    """Protocol for consumers of the replicated event stream."""

    async def consume(self, records: RecordReceiver) -> None:
        """Write every record until ``records`` is exhausted, then flush.

        Parameters
        ----------
        records
            Replicated stream for one product, in transformer order.

        """
        ...


@dc.dataclass(frozen=True, slots=True)
class SinkRegistration:
    """A named sink ready to be attached to a product export.

    Attributes
    ----------
    name
        Label used in logs and in per-sink failure reports.
    sink
        The consumer itself.
    cleanup
        Optional action releasing the sink's destination once it has
        finished consuming.

    """

    name: str
    sink: EventSink
    cleanup: Cleanup | None = None


async def close_all(cleanups: cabc.Iterable[Cleanup | None]) -> None:
    """Run every cleanup, raising the first failure once all have run.

    ``None`` entries are skipped, so registrations can be passed through
    without filtering.
    """
    first_error: Exception | None = None
    for cleanup in cleanups:
        if cleanup is None:
            continue
        try:
            await cleanup()
        except Exception as exc:  # noqa: BLE001 - release the rest first
            first_error = first_error or exc
    if first_error is not None:
        raise first_error
