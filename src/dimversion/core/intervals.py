"""
Time model for validity intervals.

Two units are supported:

* ``TimeUnit.DAY``     – calendar dates; datetimes are truncated to their date.
* ``TimeUnit.INSTANT`` – timestamps; aware values are stored as naive UTC.

Storage is always a naive ``datetime`` so a single column type serves both.
With ``closed_end=False`` intervals are half-open ``[valid_from, valid_to)``
and the expired row ends exactly where its successor starts. With
``closed_end=True`` the expired row ends one unit earlier (a day, or a
microsecond) and ``valid_to`` itself is still inside the interval.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum

Moment = dt.datetime | dt.date


class TimeUnit(str, Enum):
    DAY = "day"
    INSTANT = "instant"

    @property
    def step(self) -> dt.timedelta:
        """Smallest representable distance between two moments."""
        if self is TimeUnit.DAY:
            return dt.timedelta(days=1)
        return dt.timedelta(microseconds=1)


def to_storage(value: Moment, unit: TimeUnit) -> dt.datetime:
    """Normalise a caller-supplied date/datetime into the stored form."""
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        if unit is TimeUnit.DAY:
            return dt.datetime(value.year, value.month, value.day)
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")


def from_storage(value: dt.datetime | None, unit: TimeUnit) -> Moment | None:
    if value is None:
        return None
    if unit is TimeUnit.DAY:
        return value.date()
    return value


def expiry_for(effective: dt.datetime, unit: TimeUnit, closed_end: bool) -> dt.datetime:
    """``valid_to`` stamped on the version a transition at *effective* expires."""
    return effective - unit.step if closed_end else effective


def successor_start(valid_to: dt.datetime, unit: TimeUnit, closed_end: bool) -> dt.datetime:
    """Inverse of :func:`expiry_for`: where the next version must begin."""
    return valid_to + unit.step if closed_end else valid_to


def contains(
    valid_from: dt.datetime,
    valid_to: dt.datetime | None,
    at: dt.datetime,
    closed_end: bool,
) -> bool:
    if at < valid_from:
        return False
    if valid_to is None:
        return True
    return at <= valid_to if closed_end else at < valid_to
