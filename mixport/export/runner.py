"""Run every product's export concurrently and collect failures.

Each product gets its own task, its own export client and its own sinks.
All product tasks are joined by one ``asyncio.gather`` barrier; only after it
returns is the :class:`FailureSet` inspected to decide the run's outcome.
A failing product never stops the others.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import typing as typ

from mixport.common.time import utcnow
from mixport.sinks.base import close_all

from .channel import DEFAULT_BUFFER_SIZE
from .failures import FailureSet
from .multiplexer import ExportMultiplexer, ExportState, ProductExportResult
from .observability import ExportEventLogger

if typ.TYPE_CHECKING:
    from mixport.common.dates import DateRange
    from mixport.mixpanel.client import ExportClient
    from mixport.mixpanel.models import Credentials
    from mixport.sinks.base import SinkRegistration


type ClientFactory = cabc.Callable[[Credentials], ExportClient]
type SinkOpener = cabc.Callable[[str], cabc.Awaitable[cabc.Sequence[SinkRegistration]]]


@dc.dataclass(frozen=True, slots=True)
class ExportRunOptions:
    """Settings shared by every product in a run."""

    buffer_size: int = DEFAULT_BUFFER_SIZE
    extra_params: cabc.Mapping[str, str] | None = None


@dc.dataclass(frozen=True, slots=True)
class ExportRunSummary:
    """Outcome of a whole run, available after the join barrier."""

    results: tuple[ProductExportResult, ...]
    failures: FailureSet

    @property
    def ok(self) -> bool:
        """Whether every product exported successfully."""
        return not self.failures


async def export_product(
    credentials: Credentials,
    date_range: DateRange,
    *,
    client_factory: ClientFactory,
    open_sinks: SinkOpener,
    failures: FailureSet,
    options: ExportRunOptions | None = None,
    event_logger: ExportEventLogger | None = None,
) -> ProductExportResult:
    """Export one product's range to its sinks.

    Every error is recovered here: it is logged, recorded in ``failures``,
    and returned in the result.
    """
    resolved = options or ExportRunOptions()
    events = event_logger or ExportEventLogger()
    product = credentials.product
    started_at = utcnow()

    try:
        result = await _export_product_inner(
            credentials, date_range, open_sinks, client_factory, resolved, events
        )
    except Exception as exc:  # noqa: BLE001 - product boundary, never crash the run
        result = ProductExportResult(
            product=product, state=ExportState.FAILED, error=exc
        )

    duration = utcnow() - started_at
    if result.failed:
        failures.add(product)
        events.log_product_failed(result, duration)
    else:
        events.log_product_completed(result, duration)
    return result


async def _export_product_inner(  # noqa: PLR0913
    credentials: Credentials,
    date_range: DateRange,
    open_sinks: SinkOpener,
    client_factory: ClientFactory,
    options: ExportRunOptions,
    events: ExportEventLogger,
) -> ProductExportResult:
    registrations = await open_sinks(credentials.product)
    events.log_product_started(
        credentials.product,
        date_range,
        [registration.name for registration in registrations],
    )
    try:
        client = client_factory(credentials)
        multiplexer = ExportMultiplexer(
            client, buffer_size=options.buffer_size, event_logger=events
        )
        for registration in registrations:
            multiplexer.register(
                registration.name, registration.sink, cleanup=registration.cleanup
            )
    except Exception:
        # The multiplexer never started, so the sinks' own tasks will not
        # release their destinations.
        await release_sinks(registrations)
        raise

    try:
        return await multiplexer.run(date_range, options.extra_params)
    finally:
        await client.aclose()


async def release_sinks(registrations: cabc.Sequence[SinkRegistration]) -> None:
    """Run every registration's cleanup, raising the first failure afterwards."""
    await close_all(registration.cleanup for registration in registrations)


async def run_export(  # noqa: PLR0913
    products: cabc.Sequence[Credentials],
    date_range: DateRange,
    *,
    client_factory: ClientFactory,
    open_sinks: SinkOpener,
    options: ExportRunOptions | None = None,
    event_logger: ExportEventLogger | None = None,
) -> ExportRunSummary:
    """Export every product concurrently and wait for all of them."""
    events = event_logger or ExportEventLogger()
    failures = FailureSet()
    coroutines = [
        export_product(
            credentials,
            date_range,
            client_factory=client_factory,
            open_sinks=open_sinks,
            failures=failures,
            options=options,
            event_logger=events,
        )
        for credentials in products
    ]
    gathered = await asyncio.gather(*coroutines, return_exceptions=True)

    results: list[ProductExportResult] = []
    for credentials, outcome in zip(products, gathered, strict=True):
        if isinstance(outcome, ProductExportResult):
            results.append(outcome)
        elif isinstance(outcome, Exception):
            failures.add(credentials.product)
            results.append(
                ProductExportResult(
                    product=credentials.product,
                    state=ExportState.FAILED,
                    error=outcome,
                )
            )
        else:
            # System-level exceptions (e.g. KeyboardInterrupt) end the run.
            raise outcome

    events.log_run_completed(len(products), failures.products())
    return ExportRunSummary(results=tuple(results), failures=failures)
