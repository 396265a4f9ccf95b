"""HTTP client for the Mixpanel raw export API."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import os
import typing as typ

import httpx

from .errors import TransportError
from .models import ExportResult
from .request import RequestBuilder
from .transform import EventTransformer

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import Credentials, EventRecord, RecordSender

EXPORT_PATH = "/2.0/export"


class ExportClient(typ.Protocol):
    """Interface for retrieving one product's events a day at a time."""

    @property
    def product(self) -> str:
        """Product whose events this client exports."""
        ...

    async def export_day(
        self,
        day: dt.date,
        output: RecordSender,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> ExportResult:
        """Send every event recorded on ``day`` to ``output``."""
        ...

    async def aclose(self) -> None:
        """Release any HTTP resources held by the client."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class MixpanelConfig:
    """Configuration for the Mixpanel export client."""

    base_url: str = "https://data.mixpanel.com/api"
    timeout_s: float = 300.0
    user_agent: str = "mixport/0.1"

    @classmethod
    def from_env(cls, *, defaults: MixpanelConfig | None = None) -> MixpanelConfig:
        """Build configuration, honouring ``MIXPORT_*`` overrides.

        ``MIXPORT_MIXPANEL_BASE_URL`` replaces the API base URL and
        ``MIXPORT_HTTP_TIMEOUT_S`` the per-request timeout in seconds. Unset
        variables keep the values from ``defaults``.
        """
        defaults = defaults or cls()
        base_url = os.environ.get("MIXPORT_MIXPANEL_BASE_URL", "").strip()
        raw_timeout = os.environ.get("MIXPORT_HTTP_TIMEOUT_S", "").strip()
        timeout_s = defaults.timeout_s
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError as exc:
                msg = f"MIXPORT_HTTP_TIMEOUT_S must be a number, got: {raw_timeout!r}"
                raise ValueError(msg) from exc
            if timeout_s <= 0:
                msg = f"MIXPORT_HTTP_TIMEOUT_S must be positive, got: {timeout_s}"
                raise ValueError(msg)
        return cls(
            base_url=base_url.rstrip("/") or defaults.base_url,
            timeout_s=timeout_s,
            user_agent=defaults.user_agent,
        )


class _CountingSender:
    """Forward records while counting what was delivered."""

    def __init__(self, output: RecordSender) -> None:
        self._output = output
        self.sent = 0

    async def send(self, record: EventRecord) -> None:
        await self._output.send(record)
        self.sent += 1


class MixpanelExportClient:
    """Mixpanel implementation of :class:`ExportClient`.

    Each :meth:`export_day` call issues exactly one streamed GET; the body is
    decoded line by line so a day's events are never held in memory at once.
    Failures are returned in the :class:`ExportResult`, never raised.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        config: MixpanelConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        builder: RequestBuilder | None = None,
        transformer: EventTransformer | None = None,
    ) -> None:
        """Initialise the client for one product's credentials."""
        self._credentials = credentials
        self._config = config or MixpanelConfig()
        self._builder = builder or RequestBuilder(credentials)
        self._transformer = transformer or EventTransformer(credentials.product)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_s,
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "application/json",
            },
        )

    @property
    def product(self) -> str:
        """Product whose events this client exports."""
        return self._credentials.product

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> typ.Self:
        """Return the client for use as an async context manager."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close owned HTTP resources on exit."""
        await self.aclose()

    def export_url(
        self,
        day: dt.date,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> str:
        """Return the signed export URL for ``day``."""
        query = self._builder.build(day, extra_params)
        return f"{self._config.base_url}{EXPORT_PATH}?{query}"

    async def export_day(
        self,
        day: dt.date,
        output: RecordSender,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> ExportResult:
        """Stream every event recorded on ``day`` into ``output``.

        ``output`` is left open: successive days of a range share it.
        """
        url = self.export_url(day, extra_params)
        sender = _CountingSender(output)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    return _failed(
                        TransportError.http_error(self.product, response.status_code)
                    )
                return await self._transformer.transform(
                    response.aiter_lines(), sender
                )
        except httpx.HTTPError as exc:
            return _failed(
                TransportError.request_failed(self.product, exc), records=sender.sent
            )


def _failed(error: TransportError, *, records: int = 0) -> ExportResult:
    return ExportResult(records=records, error=error)
