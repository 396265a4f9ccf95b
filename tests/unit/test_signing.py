"""Unit tests for export request signing."""

from __future__ import annotations

import hashlib

from mixport.mixpanel.signing import sign


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8"), usedforsecurity=False).hexdigest()


def test_signature_ignores_parameter_order() -> None:
    """Insertion order of the parameters does not change the signature."""
    assert sign({"b": "2", "a": "1"}, "s") == sign({"a": "1", "b": "2"}, "s")


def test_signature_is_md5_of_sorted_pairs_and_secret() -> None:
    """Pairs are concatenated without a separator, then the secret."""
    assert sign({"b": "2", "a": "1"}, "s") == _md5("a=1b=2s")


def test_pairs_sort_by_full_key_value_string() -> None:
    """Sorting uses ``key=value``, so ``a0=`` precedes ``a=``."""
    assert sign({"a": "x", "a0": "y"}, "secret") == _md5("a0=ya=xsecret")


def test_values_are_not_url_encoded() -> None:
    """Reserved characters are signed verbatim."""
    assert sign({"where": 'properties["plan"] == "pro"'}, "k") == _md5(
        'where=properties["plan"] == "pro"k'
    )


def test_secret_changes_signature() -> None:
    """Different secrets produce different signatures."""
    params = {"api_key": "abc"}
    assert sign(params, "one") != sign(params, "two")
