"""Typed domain models for Mixpanel exports."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from .errors import ExportError

type EventValue = (
    str | int | float | bool | None | list[EventValue] | dict[str, EventValue]
)
type EventRecord = dict[str, EventValue]

# Reserved key holding the per-record identifier; the `$` prefix keeps it
# apart from ordinary Mixpanel properties.
EVENT_ID_KEY = "$mixport_id"
EVENT_KEY = "event"
PRODUCT_KEY = "product"


@dc.dataclass(frozen=True, slots=True)
class Credentials:
    """API credentials for a single Mixpanel product."""

    product: str
    key: str
    secret: str = dc.field(repr=False)


@dc.dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of exporting one stream (one product, one day)."""

    records: int = 0
    error: ExportError | None = None

    @property
    def ok(self) -> bool:
        """Whether the stream was exported without error."""
        return self.error is None


class RecordSender(typ.Protocol):
    """Destination for transformed records."""

    async def send(self, record: EventRecord) -> None:
        """Deliver one record, waiting while the destination is full."""
        ...
