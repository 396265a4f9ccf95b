"""Mixpanel raw export client and stream transformation."""

from __future__ import annotations

from .client import ExportClient, MixpanelConfig, MixpanelExportClient
from .errors import (
    EventDecodeError,
    EventIdentifierError,
    ExportError,
    ProviderError,
    TransportError,
)
from .models import (
    EVENT_ID_KEY,
    Credentials,
    EventRecord,
    EventValue,
    ExportResult,
    RecordSender,
)
from .request import RequestBuilder
from .signing import sign
from .transform import EventTransformer

__all__ = [
    "EVENT_ID_KEY",
    "Credentials",
    "EventDecodeError",
    "EventIdentifierError",
    "EventRecord",
    "EventTransformer",
    "EventValue",
    "ExportClient",
    "ExportError",
    "ExportResult",
    "MixpanelConfig",
    "MixpanelExportClient",
    "ProviderError",
    "RecordSender",
    "RequestBuilder",
    "TransportError",
    "sign",
]
