"""Fan-out of product event streams to sinks, and the run that drives it."""

from __future__ import annotations

from .channel import DEFAULT_BUFFER_SIZE, ChannelClosedError, RecordChannel
from .failures import FailureSet
from .multiplexer import (
    ExportMultiplexer,
    ExportState,
    MultiplexerStateError,
    ProductExportResult,
    SinkHandle,
)
from .observability import (
    ErrorCategory,
    ExportEventLogger,
    ExportEventType,
    categorize_error,
)
from .runner import (
    ExportRunOptions,
    ExportRunSummary,
    export_product,
    release_sinks,
    run_export,
)

__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "ChannelClosedError",
    "ErrorCategory",
    "ExportEventLogger",
    "ExportEventType",
    "ExportMultiplexer",
    "ExportRunOptions",
    "ExportRunSummary",
    "ExportState",
    "FailureSet",
    "MultiplexerStateError",
    "ProductExportResult",
    "RecordChannel",
    "SinkHandle",
    "categorize_error",
    "export_product",
    "release_sinks",
    "run_export",
]
