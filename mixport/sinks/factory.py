"""Build the sinks enabled in a configuration for one product."""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import typing as typ

from mixport.logging import get_logger, log_debug

from .base import SinkRegistration, close_all
from .columns_sink import ColumnSink, EventColumnDef, load_column_definitions
from .csv_sink import CSVSink
from .files import ExportFile, open_export_file
from .json_sink import JSONSink
from .kinesis_sink import KinesisClient, KinesisSink, create_kinesis_client

if typ.TYPE_CHECKING:
    from mixport.common.dates import DateRange
    from mixport.config import KinesisConfig, MixportConfig

logger = get_logger(__name__)

type KinesisClientFactory = cabc.Callable[[KinesisConfig], KinesisClient]


async def open_sinks(
    config: MixportConfig,
    product: str,
    date_range: DateRange,
    *,
    kinesis_client_factory: KinesisClientFactory = create_kinesis_client,
) -> list[SinkRegistration]:
    """Open every sink enabled in ``config`` for ``product``.

    Sinks are returned in a fixed order: kinesis, json, csv, columns. If any
    destination fails to open, those already opened are closed before the
    error propagates.
    """
    registrations: list[SinkRegistration] = []
    try:
        if config.kinesis.enabled:
            client = await asyncio.to_thread(kinesis_client_factory, config.kinesis)
            registrations.append(
                SinkRegistration("kinesis", KinesisSink(client, config.kinesis.stream))
            )
        if config.json.enabled:
            json_file = await open_export_file(product, date_range, config.json, "json")
            registrations.append(
                SinkRegistration("json", JSONSink(json_file.stream), json_file.close)
            )
        if config.csv.enabled:
            csv_file = await open_export_file(product, date_range, config.csv, "csv")
            registrations.append(
                SinkRegistration("csv", CSVSink(csv_file.stream), csv_file.close)
            )
        if config.columns.enabled:
            registrations.append(
                await _open_column_sink(config, product, date_range)
            )
    except BaseException:
        await close_all(r.cleanup for r in registrations)
        raise

    log_debug(
        logger,
        "%s: opened sinks %s",
        product,
        ",".join(r.name for r in registrations) or "-",
    )
    return registrations


async def _open_column_sink(
    config: MixportConfig,
    product: str,
    date_range: DateRange,
) -> SinkRegistration:
    columns = await asyncio.to_thread(load_column_definitions, config.columns.columns)
    files: list[ExportFile] = []

    async def close_files() -> None:
        await close_all(export_file.close for export_file in files)

    definitions: dict[str, EventColumnDef] = {}
    try:
        for event, event_columns in columns.items():
            export_file = await open_export_file(
                product, date_range, config.columns, "csv", event=event
            )
            files.append(export_file)
            definitions[event] = EventColumnDef(export_file.stream, tuple(event_columns))
    except BaseException:
        await close_files()
        raise
    return SinkRegistration("columns", ColumnSink(definitions), close_files)
