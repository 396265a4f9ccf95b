"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def utctoday() -> dt.date:
    """Return the current calendar date in UTC."""
    return utcnow().date()
