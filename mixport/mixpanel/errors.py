"""Errors raised while exporting Mixpanel event streams.

Every failure that aborts a product's day is an :class:`ExportError`; the
product task records it and moves on, it never escapes to the process.
"""

from __future__ import annotations


class ExportError(RuntimeError):
    """Base class for failures that abort one product's export."""


class TransportError(ExportError):
    """Raised when the export request cannot be completed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, product: str, status_code: int) -> TransportError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"{product}: export HTTP {status_code}", status_code=status_code)

    @classmethod
    def request_failed(cls, product: str, exc: BaseException) -> TransportError:
        """Return an error wrapping a transport-level failure."""
        return cls(f"{product}: export request failed: {exc}")


class EventDecodeError(ExportError):
    """Raised when a line of the export stream is not a valid event."""

    def __init__(self, message: str, *, line_number: int) -> None:
        """Initialise with a message and the offending 1-based line number."""
        self.line_number = line_number
        super().__init__(message)

    @classmethod
    def invalid_json(
        cls, product: str, line_number: int, exc: BaseException
    ) -> EventDecodeError:
        """Return an error for a line that is not a well-formed event object."""
        return cls(
            f"{product}: malformed event on line {line_number}: {exc}",
            line_number=line_number,
        )

    @classmethod
    def missing(cls, product: str, line_number: int, field: str) -> EventDecodeError:
        """Return an error for an event without a required field."""
        return cls(
            f"{product}: event on line {line_number} missing required field: {field}",
            line_number=line_number,
        )


class ProviderError(ExportError):
    """Raised when Mixpanel reports an error inside the export stream."""

    def __init__(self, message: str, *, provider_message: str) -> None:
        """Initialise with a message and the provider's own error text."""
        self.provider_message = provider_message
        super().__init__(message)

    @classmethod
    def from_payload(cls, product: str, error: object) -> ProviderError:
        """Return an error for an ``{"error": ...}`` line."""
        text = str(error)
        return cls(f"{product}: API error: {text}", provider_message=text)


class EventIdentifierError(ExportError):
    """Raised when a unique event identifier cannot be generated."""

    @classmethod
    def entropy_unavailable(
        cls, product: str, exc: BaseException
    ) -> EventIdentifierError:
        """Return an error for a failing randomness source."""
        return cls(f"{product}: could not generate event identifier: {exc}")
