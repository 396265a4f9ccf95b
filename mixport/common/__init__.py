"""Shared helpers used across the export pipeline."""

from __future__ import annotations

from .dates import DateRange, parse_date, parse_range
from .time import utcnow

__all__ = ["DateRange", "parse_date", "parse_range", "utcnow"]
