"""femtologging wiring for mixport.

Every module obtains its logger through :func:`get_logger` and emits
pre-formatted messages with the ``log_*`` helpers below, so export, day and
sink events share one line format regardless of which task produced them.

Example:
>>> from mixport.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "exported %d records for %s", 12, "acme")

"""

from __future__ import annotations

import enum
import os
import typing as typ

from femtologging import basicConfig, get_logger

LOG_LEVEL_ENV_VAR = "MIXPORT_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Log levels understood by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Normalize a raw level name.

    Parameters
    ----------
    level : str | None
        Level name as typed by the operator, in any case.

    Returns
    -------
    tuple[str, bool]
        The upper-cased level (``INFO`` when unusable) and whether the input
        had to be replaced.

    """
    if not level or not level.strip():
        return (DEFAULT_LOG_LEVEL, True)

    normalized = level.strip().upper()
    if normalized in LogLevel.__members__:
        return (normalized, False)
    return (DEFAULT_LOG_LEVEL, True)


def resolve_log_level(cli_level: str | None) -> str | None:
    """Pick the command-line level, falling back to ``MIXPORT_LOG_LEVEL``."""
    if cli_level:
        return cli_level
    return os.environ.get(LOG_LEVEL_ENV_VAR)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root handler at ``level``.

    Returns the same ``(level, invalid)`` pair as :func:`normalize_log_level`
    so callers can warn once logging is live.
    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into a percent-style ``template``."""
    if not args:
        return template
    return template % args


class _SupportsLog(typ.Protocol):
    """Subset of the femtologging logger API used here."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _emit(
    logger: _SupportsLog,
    level: str,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a DEBUG message with percent-style formatting."""
    _emit(logger, "DEBUG", template, args, exc_info)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message with percent-style formatting.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    template : str
        Percent-style message template.
    *args : object
        Values interpolated into ``template``.
    exc_info : object | None, optional
        Exception attached to the record.

    """
    _emit(logger, "INFO", template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message with percent-style formatting."""
    _emit(logger, "WARNING", template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message with percent-style formatting."""
    _emit(logger, "ERROR", template, args, exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log ``message`` at ERROR with ``exc`` attached as exc_info."""
    _emit(logger, "ERROR", "%s", (message,), exc)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LOG_LEVEL_ENV_VAR",
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
    "resolve_log_level",
]
