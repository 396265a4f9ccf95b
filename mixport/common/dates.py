"""Inclusive calendar-day ranges used to drive exports.

The export API is queried one UTC calendar day at a time, so every export is
described by a :class:`DateRange` and walked day by day.

Usage
-----
>>> from mixport.common.dates import parse_range
>>> window = parse_range("2024/01/30-2024/02/02")
>>> [day.isoformat() for day in window]
['2024-01-30', '2024-01-31', '2024-02-01', '2024-02-02']
>>> window.stamp()
'20240130-20240202'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from .time import utctoday

CLI_DATE_FORMAT = "%Y/%m/%d"
_STAMP_FORMAT = "%Y%m%d"
_ONE_DAY = dt.timedelta(days=1)


@dc.dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive ``[start, end]`` pair of calendar dates.

    Attributes
    ----------
    start
        First day exported.
    end
        Last day exported; equal to ``start`` for a single-day export.

    """

    start: dt.date
    end: dt.date

    def __post_init__(self) -> None:
        """Reject ranges that end before they start."""
        if self.end < self.start:
            msg = (
                f"date range ends before it starts: "
                f"{self.start.isoformat()} > {self.end.isoformat()}"
            )
            raise ValueError(msg)

    @classmethod
    def single(cls, day: dt.date) -> DateRange:
        """Return a range covering exactly ``day``."""
        return cls(start=day, end=day)

    @classmethod
    def yesterday(cls, *, today: dt.date | None = None) -> DateRange:
        """Return the range for the newest complete day of data."""
        reference = today or utctoday()
        return cls.single(reference - _ONE_DAY)

    @property
    def is_single_day(self) -> bool:
        """Whether the range covers one day only."""
        return self.start == self.end

    def __iter__(self) -> typ.Iterator[dt.date]:
        """Yield every day in the range in ascending order."""
        day = self.start
        while day <= self.end:
            yield day
            day += _ONE_DAY

    def __len__(self) -> int:
        """Return the number of days covered, both ends included."""
        return (self.end - self.start).days + 1

    def stamp(self) -> str:
        """Return the file-name stamp (``YYYYMMDD`` or ``YYYYMMDD-YYYYMMDD``)."""
        stamp = self.start.strftime(_STAMP_FORMAT)
        if not self.is_single_day:
            stamp += f"-{self.end.strftime(_STAMP_FORMAT)}"
        return stamp


def parse_date(value: str) -> dt.date:
    """Parse a ``YYYY/MM/DD`` command-line date.

    Raises
    ------
    ValueError
        If ``value`` is not in ``YYYY/MM/DD`` format.

    """
    try:
        return dt.datetime.strptime(value.strip(), CLI_DATE_FORMAT).date()  # noqa: DTZ007 - date only
    except ValueError as exc:
        msg = f"invalid date {value!r}, should be in YYYY/MM/DD format"
        raise ValueError(msg) from exc


def parse_range(value: str) -> DateRange:
    """Parse a ``YYYY/MM/DD-YYYY/MM/DD`` command-line range."""
    parts = value.split("-")
    if len(parts) != 2:  # noqa: PLR2004 - start and end
        msg = f"invalid range {value!r}, should be YYYY/MM/DD-YYYY/MM/DD"
        raise ValueError(msg)
    start, end = (parse_date(part) for part in parts)
    return DateRange(start=start, end=end)
