"""Unit tests for the per-product fan-out multiplexer."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from mixport.export.multiplexer import (
    ExportMultiplexer,
    ExportState,
    MultiplexerStateError,
)
from mixport.mixpanel.errors import ProviderError, TransportError
from tests.helpers import run_async
from tests.helpers.fakes import (
    CleanupRecorder,
    CollectingSink,
    FakeExportClient,
    numbered_records,
)

if typ.TYPE_CHECKING:
    from mixport.common.dates import DateRange
    from mixport.export.multiplexer import ProductExportResult

DAY_ONE = dt.date(2024, 1, 1)
DAY_TWO = dt.date(2024, 1, 2)
DAY_THREE = dt.date(2024, 1, 3)


def _run(multiplexer: ExportMultiplexer, date_range: DateRange) -> ProductExportResult:
    return run_async(lambda: multiplexer.run(date_range))


class TestFanOut:
    """Every registered sink receives the whole stream."""

    def test_three_sinks_see_every_record_in_order(self, three_days: DateRange) -> None:
        """N records across the range reach each of three sinks in order."""
        records = numbered_records(30)
        client = FakeExportClient(
            "acme",
            batches={
                DAY_ONE: records[:10],
                DAY_TWO: records[10:25],
                DAY_THREE: records[25:],
            },
        )
        multiplexer = ExportMultiplexer(client, buffer_size=2)
        sinks = [CollectingSink() for _ in range(3)]
        handles = [
            multiplexer.register(f"sink-{index}", sink)
            for index, sink in enumerate(sinks)
        ]

        result = _run(multiplexer, three_days)

        for sink in sinks:
            assert sink.records == records
            assert sink.finished
        for handle in handles:
            assert handle.channel.closed
            assert handle.channel.drained
        assert result.state is ExportState.CLOSED
        assert multiplexer.state is ExportState.CLOSED
        assert result.records == 30
        assert result.days_completed == 3
        assert not result.failed
        assert client.calls == [DAY_ONE, DAY_TWO, DAY_THREE]

    def test_slow_sink_applies_backpressure_without_loss(
        self, three_days: DateRange
    ) -> None:
        """A slow sink holds the download back instead of dropping records."""
        buffer_size = 1
        records = numbered_records(12)
        client = FakeExportClient(
            "acme",
            batches={
                DAY_ONE: records[:4],
                DAY_TWO: records[4:9],
                DAY_THREE: records[9:],
            },
        )
        multiplexer = ExportMultiplexer(client, buffer_size=buffer_size)
        slow = CollectingSink(delay=0.005)
        fast = CollectingSink()
        slow_handle = multiplexer.register("slow", slow)
        fast_handle = multiplexer.register("fast", fast)
        slow.watch = lambda: (
            client.sent - len(slow.records),
            slow_handle.channel.qsize(),
            fast_handle.channel.qsize(),
        )

        result = _run(multiplexer, three_days)

        assert slow.records == records
        assert fast.records == records
        assert result.records == 12
        assert len(slow.observed) == 12
        for lead, slow_backlog, fast_backlog in typ.cast(
            "list[tuple[int, int, int]]", slow.observed
        ):
            # In flight: the record in hand, one per channel, one being fanned out.
            assert lead <= 2 * buffer_size + 2
            assert slow_backlog <= buffer_size
            assert fast_backlog <= buffer_size

    def test_each_sink_gets_its_own_copy(self, three_days: DateRange) -> None:
        """A sink mutating its record does not affect the others."""
        client = FakeExportClient("acme", batches={DAY_ONE: numbered_records(3)})
        multiplexer = ExportMultiplexer(client)
        mutating = CollectingSink(mutate=True)
        observer = CollectingSink()
        multiplexer.register("mutating", mutating)
        multiplexer.register("observer", observer)

        _run(multiplexer, three_days)

        assert all(record.get("mutated") for record in mutating.records)
        assert not any("mutated" in record for record in observer.records)

    def test_days_without_events_are_not_errors(self, three_days: DateRange) -> None:
        """Empty days complete with zero records."""
        client = FakeExportClient("acme")
        multiplexer = ExportMultiplexer(client)
        sink = CollectingSink()
        multiplexer.register("sink", sink)

        result = _run(multiplexer, three_days)

        assert result.state is ExportState.CLOSED
        assert result.records == 0
        assert result.days_completed == 3
        assert sink.finished

    def test_run_without_sinks_still_downloads(self, three_days: DateRange) -> None:
        """A product with no sinks exports and discards its records."""
        client = FakeExportClient("acme", batches={DAY_TWO: numbered_records(4)})

        result = _run(ExportMultiplexer(client), three_days)

        assert result.records == 4
        assert result.state is ExportState.CLOSED


class TestFailedDay:
    """The first failing day ends the product's download."""

    def test_remaining_days_are_skipped(self, three_days: DateRange) -> None:
        """Days after the failure are never requested."""
        client = FakeExportClient(
            "acme",
            batches={DAY_ONE: numbered_records(5), DAY_TWO: numbered_records(2)},
            failures={DAY_TWO: ProviderError.from_payload("acme", "boom")},
        )
        multiplexer = ExportMultiplexer(client)
        sink = CollectingSink()
        handle = multiplexer.register("sink", sink)

        result = _run(multiplexer, three_days)

        assert client.calls == [DAY_ONE, DAY_TWO]
        assert result.state is ExportState.FAILED
        assert result.failed
        assert result.failed_day == DAY_TWO
        assert result.days_completed == 1
        assert result.records == 7
        assert isinstance(result.error, ProviderError)
        assert len(sink.records) == 7, "records sent before the failure stay sent"
        assert sink.finished
        assert handle.channel.closed

    def test_first_day_failure(self, three_days: DateRange) -> None:
        """A transport failure on day one still closes every sink."""
        client = FakeExportClient(
            "acme", failures={DAY_ONE: TransportError.http_error("acme", 500)}
        )
        multiplexer = ExportMultiplexer(client)
        sinks = [CollectingSink(), CollectingSink()]
        for index, sink in enumerate(sinks):
            multiplexer.register(f"sink-{index}", sink)

        result = _run(multiplexer, three_days)

        assert client.calls == [DAY_ONE]
        assert result.failed_day == DAY_ONE
        assert all(sink.finished for sink in sinks)

    def test_client_crash_propagates_after_sinks_finish(
        self, three_days: DateRange
    ) -> None:
        """An unexpected client exception still tears the sinks down."""
        client = FakeExportClient("acme", crash=RuntimeError("client exploded"))
        multiplexer = ExportMultiplexer(client)
        cleanup = CleanupRecorder()
        sink = CollectingSink()
        multiplexer.register("sink", sink, cleanup=cleanup)

        with pytest.raises(RuntimeError, match="client exploded"):
            _run(multiplexer, three_days)

        assert sink.finished
        assert cleanup.calls == 1


class TestSinkFailure:
    """A failing sink never blocks the others."""

    def test_failed_sink_keeps_draining(self, three_days: DateRange) -> None:
        """Other sinks receive the full stream even with a tiny buffer."""
        records = numbered_records(20)
        client = FakeExportClient("acme", batches={DAY_ONE: records})
        multiplexer = ExportMultiplexer(client, buffer_size=1)
        healthy = CollectingSink()
        broken = CollectingSink(fail_after=2)
        multiplexer.register("broken", broken)
        multiplexer.register("healthy", healthy)

        result = _run(multiplexer, three_days)

        assert healthy.records == records
        assert len(broken.records) == 2
        assert result.failed
        assert result.error is None
        assert set(result.sink_errors) == {"broken"}
        assert isinstance(result.sink_errors["broken"], RuntimeError)

    def test_cleanup_runs_for_every_sink(self, three_days: DateRange) -> None:
        """Cleanups run once each, including for a failed sink."""
        client = FakeExportClient("acme", batches={DAY_ONE: numbered_records(3)})
        multiplexer = ExportMultiplexer(client)
        cleanups = [CleanupRecorder(), CleanupRecorder()]
        multiplexer.register("ok", CollectingSink(), cleanup=cleanups[0])
        multiplexer.register(
            "broken", CollectingSink(fail_after=0), cleanup=cleanups[1]
        )

        _run(multiplexer, three_days)

        assert [cleanup.calls for cleanup in cleanups] == [1, 1]

    def test_cleanup_failure_marks_the_sink_failed(self, three_days: DateRange) -> None:
        """An error releasing the destination is reported for that sink."""
        client = FakeExportClient("acme", batches={DAY_ONE: numbered_records(1)})
        multiplexer = ExportMultiplexer(client)
        multiplexer.register(
            "json", CollectingSink(), cleanup=CleanupRecorder(error=OSError("disk full"))
        )

        result = _run(multiplexer, three_days)

        assert result.failed
        assert isinstance(result.sink_errors["json"], OSError)


class TestLifecycle:
    """Registration is only possible before the export starts."""

    def test_register_after_run_is_rejected(self, three_days: DateRange) -> None:
        """The handle list is fixed once distribution starts."""
        multiplexer = ExportMultiplexer(FakeExportClient("acme"))
        _run(multiplexer, three_days)

        with pytest.raises(MultiplexerStateError, match="already started"):
            multiplexer.register("late", CollectingSink())

    def test_run_twice_is_rejected(self, three_days: DateRange) -> None:
        """A multiplexer exports exactly once."""
        multiplexer = ExportMultiplexer(FakeExportClient("acme"))
        _run(multiplexer, three_days)

        with pytest.raises(MultiplexerStateError):
            _run(multiplexer, three_days)

    def test_duplicate_sink_names_are_rejected(self) -> None:
        """Sink names identify failures, so they must be unique."""
        multiplexer = ExportMultiplexer(FakeExportClient("acme"))
        multiplexer.register("csv", CollectingSink())

        with pytest.raises(MultiplexerStateError, match="csv"):
            multiplexer.register("csv", CollectingSink())

    def test_new_multiplexer_is_idle(self) -> None:
        """Multiplexers start idle with no handles."""
        multiplexer = ExportMultiplexer(FakeExportClient("acme"))

        assert multiplexer.state is ExportState.IDLE
        assert multiplexer.handles == ()
        assert multiplexer.product == "acme"

    def test_buffer_size_must_be_positive(self) -> None:
        """Unbuffered sink channels are rejected."""
        with pytest.raises(ValueError, match="buffer_size"):
            ExportMultiplexer(FakeExportClient("acme"), buffer_size=0)
