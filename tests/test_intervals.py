from datetime import date, datetime, timedelta, timezone

import pytest

from dimversion.core.intervals import (
    TimeUnit,
    contains,
    expiry_for,
    from_storage,
    successor_start,
    to_storage,
)


def test_day_unit_storage():
    assert to_storage(date(2024, 6, 1), TimeUnit.DAY) == datetime(2024, 6, 1)
    assert to_storage(datetime(2024, 6, 1, 23, 59), TimeUnit.DAY) == datetime(2024, 6, 1)
    assert from_storage(datetime(2024, 6, 1), TimeUnit.DAY) == date(2024, 6, 1)
    assert from_storage(None, TimeUnit.DAY) is None


def test_instant_unit_normalises_to_naive_utc():
    aware = datetime(2024, 6, 1, 2, 0, tzinfo=timezone(timedelta(hours=3)))
    assert to_storage(aware, TimeUnit.INSTANT) == datetime(2024, 5, 31, 23, 0)
    assert to_storage(date(2024, 6, 1), TimeUnit.INSTANT) == datetime(2024, 6, 1)


def test_rejects_non_temporal_values():
    with pytest.raises(TypeError):
        to_storage("2024-06-01", TimeUnit.DAY)


@pytest.mark.parametrize(
    "unit, closed_end, expected",
    [
        (TimeUnit.DAY, False, datetime(2024, 6, 1)),
        (TimeUnit.DAY, True, datetime(2024, 5, 31)),
        (TimeUnit.INSTANT, True, datetime(2024, 5, 31, 23, 59, 59, 999999)),
    ],
)
def test_expiry_and_successor_are_inverse(unit, closed_end, expected):
    effective = datetime(2024, 6, 1)
    valid_to = expiry_for(effective, unit, closed_end)
    assert valid_to == expected
    assert successor_start(valid_to, unit, closed_end) == effective


def test_contains_half_open_and_closed():
    start, end = datetime(2024, 1, 1), datetime(2024, 6, 1)
    assert contains(start, end, start, closed_end=False)
    assert not contains(start, end, end, closed_end=False)
    assert contains(start, end, end, closed_end=True)
    assert not contains(start, end, datetime(2023, 12, 31), closed_end=True)
    assert contains(start, None, datetime(2099, 1, 1), closed_end=False)
