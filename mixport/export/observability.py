"""Structured log events for product exports.

Every event is a single ``[event.type] key=value ...`` line so export runs can
be followed (and alerted on) with an ordinary log aggregator.

Usage
-----
>>> event_logger = ExportEventLogger()
>>> event_logger.log_day_completed("acme", dt.date(2024, 1, 1), 1200)

"""

from __future__ import annotations

import enum
import typing as typ

from mixport.config import ConfigError
from mixport.logging import get_logger, log_error, log_info, log_warning
from mixport.mixpanel.errors import (
    EventDecodeError,
    EventIdentifierError,
    ProviderError,
    TransportError,
)
from mixport.sinks.errors import SinkError

if typ.TYPE_CHECKING:
    import datetime as dt

    from mixport.common.dates import DateRange
    from mixport.mixpanel.models import ExportResult

    from .multiplexer import ProductExportResult

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class ExportEventType(enum.StrEnum):
    """Structured log event types for export observability."""

    PRODUCT_STARTED = "export.product.started"
    PRODUCT_COMPLETED = "export.product.completed"
    PRODUCT_FAILED = "export.product.failed"
    DAY_COMPLETED = "export.day.completed"
    DAY_FAILED = "export.day.failed"
    SINK_FAILED = "export.sink.failed"
    RUN_COMPLETED = "export.run.completed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    TRANSPORT = "transport"
    DECODE = "decode"
    PROVIDER = "provider"
    IDENTIFIER = "identifier"
    SINK = "sink"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (EventDecodeError, ErrorCategory.DECODE),
    (ProviderError, ErrorCategory.PROVIDER),
    (EventIdentifierError, ErrorCategory.IDENTIFIER),
    (SinkError, ErrorCategory.SINK),
    (OSError, ErrorCategory.SINK),
    (ConfigError, ErrorCategory.CONFIGURATION),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes."""
    # Transport errors split on the HTTP status they carry
    if isinstance(exc, TransportError):
        if exc.status_code is None:
            return ErrorCategory.TRANSPORT
        if exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class ExportEventLogger:
    """Emit structured export events via femtologging.

    Success is logged at INFO, day and sink failures at WARNING (the product
    outcome follows), and product failures at ERROR.
    """

    def log_product_started(
        self,
        product: str,
        date_range: DateRange,
        sinks: typ.Sequence[str],
    ) -> None:
        """Log the start of a product export."""
        log_info(
            logger,
            "[%s] product=%s start=%s end=%s days=%d sinks=%s",
            ExportEventType.PRODUCT_STARTED,
            product,
            date_range.start.isoformat(),
            date_range.end.isoformat(),
            len(date_range),
            ",".join(sinks) or "-",
        )

    def log_day_completed(self, product: str, day: dt.date, records: int) -> None:
        """Log one exported day; an empty day is reported, not failed."""
        log_info(
            logger,
            "[%s] product=%s day=%s records=%d",
            ExportEventType.DAY_COMPLETED,
            product,
            day.isoformat(),
            records,
        )

    def log_day_failed(self, product: str, day: dt.date, result: ExportResult) -> None:
        """Log a failed day together with the records exported before it."""
        error = result.error
        log_warning(
            logger,
            "[%s] product=%s day=%s records=%d error_type=%s error_category=%s "
            "error_message=%s",
            ExportEventType.DAY_FAILED,
            product,
            day.isoformat(),
            result.records,
            type(error).__name__,
            categorize_error(error) if error else ErrorCategory.UNKNOWN,
            str(error),
        )

    def log_sink_failed(self, product: str, sink: str, error: BaseException) -> None:
        """Log a sink that stopped consuming because it raised."""
        log_warning(
            logger,
            "[%s] product=%s sink=%s error_type=%s error_message=%s",
            ExportEventType.SINK_FAILED,
            product,
            sink,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_product_completed(
        self,
        result: ProductExportResult,
        duration: dt.timedelta,
    ) -> None:
        """Log a successful product export with its totals."""
        log_info(
            logger,
            "[%s] product=%s duration_seconds=%.3f days_completed=%d records=%d",
            ExportEventType.PRODUCT_COMPLETED,
            result.product,
            duration.total_seconds(),
            result.days_completed,
            result.records,
        )

    def log_product_failed(
        self,
        result: ProductExportResult,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed product export with error categorization."""
        error = result.error
        if error is None and result.sink_errors:
            error = next(iter(result.sink_errors.values()))
        log_error(
            logger,
            "[%s] product=%s duration_seconds=%.3f days_completed=%d records=%d "
            "failed_sinks=%s error_type=%s error_category=%s error_message=%s",
            ExportEventType.PRODUCT_FAILED,
            result.product,
            duration.total_seconds(),
            result.days_completed,
            result.records,
            ",".join(result.sink_errors) or "-",
            type(error).__name__,
            categorize_error(error) if error else ErrorCategory.UNKNOWN,
            str(error),
            exc_info=error,
        )

    def log_run_completed(self, products: int, failed: typ.Sequence[str]) -> None:
        """Log the end of a run once every product has been joined."""
        log_fn = log_error if failed else log_info
        log_fn(
            logger,
            "[%s] products=%d failed=%d failed_products=%s",
            ExportEventType.RUN_COMPLETED,
            products,
            len(failed),
            ",".join(failed) or "-",
        )
