"""Fan one product's event stream out to every registered sink.

For a single product the multiplexer runs three kinds of task:

* a driving task that walks the date range one day at a time, asking the
  export client to write each day's records into the internal
  ``event_data`` channel;
* the distribution loop (the caller of :meth:`ExportMultiplexer.run`), which
  copies every record from ``event_data`` onto every sink channel;
* one task per sink, consuming its own channel.

All channels are bounded, so a slow sink slows the distribution loop, which
in turn slows the download. A sink that stalls for good stalls its product's
export with it; there is no per-sink isolation and no timeout.

The export moves through ``IDLE -> DOWNLOADING -> DRAINING -> CLOSED``. The
first failing day moves it to ``FAILED`` instead: remaining days are skipped
but ``event_data`` is still closed so every sink drains and terminates.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import typing as typ

from mixport.logging import get_logger, log_debug

from .channel import DEFAULT_BUFFER_SIZE, RecordChannel
from .observability import ExportEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from mixport.common.dates import DateRange
    from mixport.mixpanel.client import ExportClient
    from mixport.sinks.base import Cleanup, EventSink

logger = get_logger(__name__)


class ExportState(enum.StrEnum):
    """Lifecycle of one product export."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    DRAINING = "draining"
    CLOSED = "closed"
    FAILED = "failed"


class MultiplexerStateError(RuntimeError):
    """Raised when the multiplexer is used outside its lifecycle."""

    @classmethod
    def not_idle(cls, product: str, state: ExportState) -> MultiplexerStateError:
        """Return an error for registering or running after the export began."""
        return cls(f"{product}: export already started (state={state})")

    @classmethod
    def duplicate_sink(cls, product: str, name: str) -> MultiplexerStateError:
        """Return an error for a sink name registered twice."""
        return cls(f"{product}: sink already registered: {name}")


@dc.dataclass(slots=True)
class SinkHandle:
    """A registered sink, its channel, and the task consuming it."""

    name: str
    sink: EventSink
    channel: RecordChannel
    cleanup: Cleanup | None = None
    task: asyncio.Task[None] | None = None
    error: Exception | None = None


@dc.dataclass(frozen=True, slots=True)
class ProductExportResult:
    """Summary of one product's export run."""

    product: str
    state: ExportState
    records: int = 0
    days_completed: int = 0
    failed_day: dt.date | None = None
    error: Exception | None = None
    sink_errors: cabc.Mapping[str, Exception] = dc.field(default_factory=dict)

    @property
    def failed(self) -> bool:
        """Whether the download or any sink failed."""
        return self.error is not None or bool(self.sink_errors)


@dc.dataclass(frozen=True, slots=True)
class _DownloadOutcome:
    records: int
    days_completed: int
    failed_day: dt.date | None = None
    error: Exception | None = None


class ExportMultiplexer:
    """Replicate one product's transformed events onto N sink channels."""

    def __init__(
        self,
        client: ExportClient,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        event_logger: ExportEventLogger | None = None,
    ) -> None:
        """Create a multiplexer fed by ``client``.

        ``buffer_size`` bounds both the internal ``event_data`` channel and
        every sink channel.
        """
        if buffer_size < 1:
            msg = f"buffer_size must be positive, got: {buffer_size}"
            raise ValueError(msg)
        self._client = client
        self._buffer_size = buffer_size
        self._event_logger = event_logger or ExportEventLogger()
        self._handles: list[SinkHandle] = []
        self._state = ExportState.IDLE

    @property
    def product(self) -> str:
        """Product exported by this multiplexer."""
        return self._client.product

    @property
    def state(self) -> ExportState:
        """Current lifecycle state."""
        return self._state

    @property
    def handles(self) -> tuple[SinkHandle, ...]:
        """Registered sinks, in registration (and delivery) order."""
        return tuple(self._handles)

    def register(
        self,
        name: str,
        sink: EventSink,
        *,
        cleanup: Cleanup | None = None,
    ) -> SinkHandle:
        """Attach ``sink`` before the export starts.

        Raises
        ------
        MultiplexerStateError
            If the export already started or ``name`` is taken.

        """
        if self._state is not ExportState.IDLE:
            raise MultiplexerStateError.not_idle(self.product, self._state)
        if any(handle.name == name for handle in self._handles):
            raise MultiplexerStateError.duplicate_sink(self.product, name)
        handle = SinkHandle(
            name=name,
            sink=sink,
            channel=RecordChannel(self._buffer_size, name=f"{self.product}:{name}"),
            cleanup=cleanup,
        )
        self._handles.append(handle)
        return handle

    async def run(
        self,
        date_range: DateRange,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> ProductExportResult:
        """Export ``date_range`` and deliver every record to every sink.

        Returns once every sink channel has been closed and every sink task
        has finished (including its cleanup).
        """
        if self._state is not ExportState.IDLE:
            raise MultiplexerStateError.not_idle(self.product, self._state)

        event_data = RecordChannel(self._buffer_size, name=f"{self.product}:events")
        for handle in self._handles:
            handle.task = asyncio.create_task(
                self._run_sink(handle), name=f"mixport-sink-{handle.channel.name}"
            )

        self._state = ExportState.DOWNLOADING
        download = asyncio.create_task(
            self._download(date_range, event_data, extra_params),
            name=f"mixport-download-{self.product}",
        )
        try:
            await self._distribute(event_data)
        except BaseException:
            download.cancel()
            raise
        finally:
            await self._close_sinks()

        outcome = await download
        if outcome.error is None:
            self._state = ExportState.CLOSED

        return ProductExportResult(
            product=self.product,
            state=self._state,
            records=outcome.records,
            days_completed=outcome.days_completed,
            failed_day=outcome.failed_day,
            error=outcome.error,
            sink_errors={
                handle.name: handle.error
                for handle in self._handles
                if handle.error is not None
            },
        )

    async def _download(
        self,
        date_range: DateRange,
        event_data: RecordChannel,
        extra_params: cabc.Mapping[str, str] | None,
    ) -> _DownloadOutcome:
        try:
            outcome = await self._fetch_days(date_range, event_data, extra_params)
        except BaseException:
            # Nobody may be reading any more; close without waiting for room.
            event_data.abort()
            raise
        await event_data.close()
        return outcome

    async def _fetch_days(
        self,
        date_range: DateRange,
        event_data: RecordChannel,
        extra_params: cabc.Mapping[str, str] | None,
    ) -> _DownloadOutcome:
        records = 0
        days_completed = 0
        for day in date_range:
            result = await self._client.export_day(day, event_data, extra_params)
            records += result.records
            if result.error is not None:
                self._state = ExportState.FAILED
                self._event_logger.log_day_failed(self.product, day, result)
                return _DownloadOutcome(
                    records=records,
                    days_completed=days_completed,
                    failed_day=day,
                    error=result.error,
                )
            days_completed += 1
            self._event_logger.log_day_completed(self.product, day, result.records)

        self._state = ExportState.DRAINING
        return _DownloadOutcome(records=records, days_completed=days_completed)

    async def _distribute(self, event_data: RecordChannel) -> None:
        async for record in event_data:
            for handle in self._handles:
                await handle.channel.send(dict(record))

    async def _close_sinks(self) -> None:
        for handle in self._handles:
            await handle.channel.close()
        tasks = [handle.task for handle in self._handles if handle.task is not None]
        await asyncio.gather(*tasks)
        log_debug(logger, "%s: closed %d sink channels", self.product, len(tasks))

    async def _run_sink(self, handle: SinkHandle) -> None:
        try:
            await handle.sink.consume(handle.channel)
        except Exception as exc:  # noqa: BLE001 - reported through the result
            handle.error = exc
            self._event_logger.log_sink_failed(self.product, handle.name, exc)
        # A sink that stops early must not block the distribution loop.
        await handle.channel.discard_remaining()
        if handle.cleanup is None:
            return
        try:
            await handle.cleanup()
        except Exception as exc:  # noqa: BLE001 - reported through the result
            if handle.error is None:
                handle.error = exc
            self._event_logger.log_sink_failed(self.product, handle.name, exc)
