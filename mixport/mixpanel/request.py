"""Per-day query construction for the export endpoint."""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import typing as typ
from urllib.parse import urlencode

from mixport.common.time import utcnow

from .signing import SIGNATURE_PARAM, sign

if typ.TYPE_CHECKING:
    from .models import Credentials

# Opaque to this client; the provider rejects requests without it.
EXPIRE_OFFSET = dt.timedelta(seconds=10000)
API_DATE_FORMAT = "%Y-%m-%d"


class RequestBuilder:
    """Build signed export queries for one product.

    Extra parameters are applied after the built-in ones, so a caller-supplied
    value replaces the default for the same key. ``sig`` is always computed
    last and cannot be supplied by the caller.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the builder to a product's credentials and a clock."""
        self._credentials = credentials
        self._clock = clock

    def build_params(
        self,
        day: dt.date,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Return the signed parameter mapping for ``day``."""
        expire = int((self._clock() + EXPIRE_OFFSET).timestamp())
        date_value = day.strftime(API_DATE_FORMAT)
        params: dict[str, str] = {
            "format": "json",
            "api_key": self._credentials.key,
            "expire": str(expire),
            "from_date": date_value,
            "to_date": date_value,
        }
        if extra_params:
            params.update(
                (key, value)
                for key, value in extra_params.items()
                if key != SIGNATURE_PARAM
            )
        params[SIGNATURE_PARAM] = sign(params, self._credentials.secret)
        return params

    def build(
        self,
        day: dt.date,
        extra_params: cabc.Mapping[str, str] | None = None,
    ) -> str:
        """Return the signed, URL-encoded query string for ``day``."""
        return urlencode(self.build_params(day, extra_params))
