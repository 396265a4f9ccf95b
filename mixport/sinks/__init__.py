"""Sink adapters consuming the replicated event stream."""

from __future__ import annotations

from .base import Cleanup, EventSink, RecordReceiver, SinkRegistration, close_all
from .columns_sink import ColumnSink, EventColumnDef, load_column_definitions
from .csv_sink import CSV_HEADER, CSVSink, csv_row, format_value
from .errors import SinkError
from .factory import open_sinks
from .files import ExportFile, export_file_name, open_export_file
from .json_sink import JSONSink
from .kinesis_sink import KinesisSink, create_kinesis_client, partition_key

__all__ = [
    "CSV_HEADER",
    "CSVSink",
    "Cleanup",
    "ColumnSink",
    "EventColumnDef",
    "EventSink",
    "ExportFile",
    "JSONSink",
    "KinesisSink",
    "RecordReceiver",
    "SinkError",
    "SinkRegistration",
    "close_all",
    "create_kinesis_client",
    "csv_row",
    "export_file_name",
    "format_value",
    "load_column_definitions",
    "open_export_file",
    "open_sinks",
    "partition_key",
]
