from datetime import datetime

import pytest

from dimversion import ConcurrentModification, StoreUnavailable, make_engine
from dimversion.persistence.store import init_store


def _insert(store, s, key, start, **extra):
    values = dict(
        dimension="customer",
        natural_key=key,
        attributes={"k": key},
        valid_from=start,
        valid_to=None,
        is_current=True,
    )
    values.update(extra)
    return store.create(s, **values)


def test_create_assigns_increasing_ids(store):
    with store.transaction() as s:
        first = _insert(store, s, "a", datetime(2024, 1, 1))
        second = _insert(store, s, "b", datetime(2024, 1, 1))
    assert second > first


def test_expire_only_touches_current_rows(store):
    with store.transaction() as s:
        sk = _insert(store, s, "a", datetime(2024, 1, 1))
    with store.transaction() as s:
        assert store.expire(s, sk, datetime(2024, 2, 1)) == 1
    with store.transaction() as s:
        assert store.expire(s, sk, datetime(2024, 3, 1)) == 0
        (row,) = store.find(s, "customer", "a")
        assert row.valid_to == datetime(2024, 2, 1)
        assert row.is_current is False


def test_second_current_row_is_rejected(store):
    with store.transaction() as s:
        _insert(store, s, "a", datetime(2024, 1, 1))

    with pytest.raises(ConcurrentModification):
        with store.transaction() as s:
            _insert(store, s, "a", datetime(2024, 2, 1))

    with store.transaction() as s:
        assert len(store.find(s, "customer", "a")) == 1


def test_bulk_update_is_scoped_to_one_key(store):
    with store.transaction() as s:
        a1 = _insert(store, s, "a", datetime(2024, 1, 1), is_current=False, valid_to=datetime(2024, 2, 1))
        _insert(store, s, "a", datetime(2024, 2, 1))
        _insert(store, s, "b", datetime(2024, 1, 1))
        assert store.update_by_natural_key(s, "customer", "a", current_pointer=a1) == 2

    with store.transaction() as s:
        assert {r.current_pointer for r in store.find(s, "customer", "a")} == {a1}
        assert {r.current_pointer for r in store.find(s, "customer", "b")} == {None}


def test_find_filters_and_orders(store):
    with store.transaction() as s:
        _insert(store, s, "a", datetime(2024, 3, 1))
        _insert(store, s, "a", datetime(2024, 1, 1), is_current=False, valid_to=datetime(2024, 3, 1))

    with store.transaction() as s:
        rows = store.find(s, "customer", "a")
        assert [r.valid_from for r in rows] == [datetime(2024, 1, 1), datetime(2024, 3, 1)]
        assert len(store.find(s, "customer", "a", current=True)) == 1
        (hit,) = store.find(s, "customer", "a", as_of=datetime(2024, 3, 1))
        assert hit.is_current
        (hit,) = store.find(s, "customer", "a", as_of=datetime(2024, 2, 29), closed_end=True)
        assert not hit.is_current

    assert [r.valid_from for r in store.stream("customer", "a")] == [
        datetime(2024, 1, 1),
        datetime(2024, 3, 1),
    ]


def test_unreachable_database_is_reported(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'missing' / 'dw.db'}")
    with pytest.raises(StoreUnavailable) as err:
        init_store(engine)
    assert err.value.__cause__ is not None
