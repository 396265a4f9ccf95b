"""Request signing for the Mixpanel raw export API.

The export endpoint authenticates each request with an MD5 digest over the
query parameters and the product secret. MD5 is the provider's wire format,
not a security choice.
"""

from __future__ import annotations

import hashlib
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

SIGNATURE_PARAM = "sig"


def sign(parameters: cabc.Mapping[str, str], secret: str) -> str:
    """Return the hex signature for ``parameters``.

    Each pair is rendered as an unencoded ``key=value`` string, the strings
    are sorted, concatenated without a separator and followed by ``secret``.

    >>> sign({"b": "2", "a": "1"}, "s") == sign({"a": "1", "b": "2"}, "s")
    True

    """
    pairs = sorted(f"{key}={value}" for key, value in parameters.items())
    digest = hashlib.md5(usedforsecurity=False)
    digest.update("".join(pairs).encode("utf-8"))
    digest.update(secret.encode("utf-8"))
    return digest.hexdigest()
