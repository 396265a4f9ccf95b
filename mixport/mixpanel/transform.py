"""Decode and enrich the newline-delimited export stream.

Each line of an export response is an independent JSON object, either an
event::

    {"event": "signup", "properties": {"distinct_id": "u1", "plan": "pro"}}

or a provider error that aborts the rest of the day::

    {"error": "some api error"}

Events are flattened into an :data:`EventRecord`: the ``properties`` keys
become top-level keys and ``event``, ``product`` and a fresh identifier are
written on top of them.
"""

from __future__ import annotations

import typing as typ
import uuid

import msgspec

from .errors import (
    EventDecodeError,
    EventIdentifierError,
    ExportError,
    ProviderError,
)
from .models import EVENT_ID_KEY, EVENT_KEY, PRODUCT_KEY, ExportResult

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import EventRecord, RecordSender

_ERROR_KEY = "error"
_PROPERTIES_KEY = "properties"

# msgspec keeps JSON integers as int and reals as float.
_line_decoder = msgspec.json.Decoder(dict[str, typ.Any])


def new_event_id() -> str:
    """Return a random version-4 UUID string."""
    return str(uuid.uuid4())


class EventTransformer:
    """Turn raw export lines into enriched records for one product."""

    def __init__(
        self,
        product: str,
        *,
        id_factory: cabc.Callable[[], str] = new_event_id,
    ) -> None:
        """Bind the transformer to ``product`` and an identifier source."""
        self._product = product
        self._id_factory = id_factory

    @property
    def product(self) -> str:
        """Product identifier injected into every record."""
        return self._product

    def transform_line(self, line: str | bytes, *, line_number: int) -> EventRecord:
        """Decode and enrich a single non-blank export line.

        Raises
        ------
        ProviderError
            If the line carries a top-level ``error`` field.
        EventDecodeError
            If the line is not a JSON object with a string ``event`` and an
            object ``properties``.
        EventIdentifierError
            If no identifier could be generated.

        """
        try:
            raw = _line_decoder.decode(line)
        except msgspec.DecodeError as exc:
            raise EventDecodeError.invalid_json(
                self._product, line_number, exc
            ) from exc

        if _ERROR_KEY in raw:
            raise ProviderError.from_payload(self._product, raw[_ERROR_KEY])

        event = raw.get(EVENT_KEY)
        if not isinstance(event, str):
            raise EventDecodeError.missing(self._product, line_number, EVENT_KEY)
        properties = raw.get(_PROPERTIES_KEY)
        if not isinstance(properties, dict):
            raise EventDecodeError.missing(
                self._product, line_number, _PROPERTIES_KEY
            )

        record: EventRecord = dict(properties)
        record[EVENT_KEY] = event
        record[PRODUCT_KEY] = self._product
        record[EVENT_ID_KEY] = self._next_id()
        return record

    async def transform(
        self,
        lines: cabc.AsyncIterable[str | bytes],
        output: RecordSender,
    ) -> ExportResult:
        """Stream ``lines`` into ``output`` until exhausted or the first failure.

        Records are sent in input order. On failure the result carries the
        number of records already sent together with the error; those records
        stay valid.
        """
        count = 0
        line_number = 0
        async for line in lines:
            line_number += 1
            if not line.strip():
                continue
            try:
                record = self.transform_line(line, line_number=line_number)
            except ExportError as exc:
                return ExportResult(records=count, error=exc)
            await output.send(record)
            count += 1
        return ExportResult(records=count)

    def _next_id(self) -> str:
        try:
            return self._id_factory()
        except (OSError, NotImplementedError) as exc:
            raise EventIdentifierError.entropy_unavailable(self._product, exc) from exc
