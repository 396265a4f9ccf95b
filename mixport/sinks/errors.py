"""Errors raised by sink adapters."""

from __future__ import annotations


class SinkError(RuntimeError):
    """Raised when a sink cannot write or release its destination."""

    @classmethod
    def unsupported_record(cls, sink: str, reason: str) -> SinkError:
        """Return an error for a record the sink cannot serialise."""
        return cls(f"{sink} sink cannot write record: {reason}")

    @classmethod
    def column_definitions(cls, path: object, reason: str) -> SinkError:
        """Return an error for an unreadable column definitions file."""
        return cls(f"failed to read column definitions from {path}: {reason}")
