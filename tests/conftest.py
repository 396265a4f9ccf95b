"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import datetime as dt

import pytest

from mixport.common.dates import DateRange
from mixport.mixpanel.models import Credentials

FIXED_NOW = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)


@pytest.fixture
def credentials() -> Credentials:
    """Return credentials for the ``acme`` product."""
    return Credentials(product="acme", key="api-key", secret="api-secret")


@pytest.fixture
def fixed_clock() -> dt.datetime:
    """Return the instant used as ``now`` by deterministic clocks."""
    return FIXED_NOW


@pytest.fixture
def three_days() -> DateRange:
    """Return a three-day range."""
    return DateRange(start=dt.date(2024, 1, 1), end=dt.date(2024, 1, 3))
