"""
Dimension versioning manager – SCD Type 2 transitions over a `RecordStore`.

A transition is one unit of work:

1. read the current version of the natural key (row-locked)
2. expire it (``valid_to`` stamped, ``is_current`` cleared)
3. insert the successor as the new current version
4. optionally repoint ``current_pointer`` on every version of the key

Either all of it commits or none of it does.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple, Type

from pydantic import BaseModel

from . import events
from .core.attributes import AttributesBase
from .core.intervals import Moment, TimeUnit, expiry_for, from_storage, successor_start, to_storage
from .core.version import VersionedEntity
from .errors import ConcurrentModification, OutOfOrderEffectiveDate, UnknownNaturalKey
from .persistence.store import RecordStore

logger = logging.getLogger(__name__)

NaturalKey = str | int
Attributes = Mapping[str, Any] | BaseModel


class _KeyLocks:
    """
    In-process mutex per (dimension, natural key).

    Entries are reference-counted and dropped when their last holder leaves,
    so the table only holds keys with a transition in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], List[Any]] = {}  # key -> [lock, holders]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, dimension: str, natural_key: str) -> Iterator[None]:
        key = (dimension, natural_key)
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


_locks = _KeyLocks()


class VersionHistory:
    """Lazy, restartable view over every version of one natural key."""

    def __init__(self, store: RecordStore, dimension: str, natural_key: str, unit: TimeUnit):
        self._store = store
        self.dimension = dimension
        self.natural_key = natural_key
        self._unit = unit

    def __iter__(self) -> Iterator[VersionedEntity]:
        for row in self._store.stream(self.dimension, self.natural_key):
            yield VersionedEntity.from_row(row, self._unit)

    def __repr__(self) -> str:
        return f"VersionHistory({self.dimension!r}, {self.natural_key!r})"


class DimensionVersionManager:
    """Applies and reads SCD Type 2 versions of one named dimension."""

    def __init__(
        self,
        store: RecordStore,
        dimension: str,
        *,
        attributes_model: Type[AttributesBase] | None = None,
        unit: TimeUnit = TimeUnit.DAY,
        closed_end: bool = False,
        track_current_pointer: bool = False,
    ):
        self.store = store
        self.dimension = dimension
        self.attributes_model = attributes_model or AttributesBase
        self.unit = TimeUnit(unit)
        self.closed_end = closed_end
        self.track_current_pointer = track_current_pointer

    def __repr__(self) -> str:
        return (
            f"DimensionVersionManager({self.dimension!r}, unit={self.unit.value}, "
            f"closed_end={self.closed_end}, pointer={self.track_current_pointer})"
        )

    # ---- helpers --------------------------------------------------------
    def _payload(self, attributes: Attributes) -> Dict[str, Any]:
        return self.attributes_model.coerce(attributes).as_json()

    def _snapshot(self, row: Any) -> VersionedEntity:
        return VersionedEntity.from_row(row, self.unit)

    # ---- writes ---------------------------------------------------------
    def _transition(
        self,
        natural_key: NaturalKey,
        new_attributes: Attributes,
        effective: Moment,
        *,
        require_existing: bool = False,
        skip_if_unchanged: bool = False,
    ) -> VersionedEntity | None:
        key = str(natural_key)
        candidate = self.attributes_model.coerce(new_attributes)
        payload = candidate.as_json()
        start = to_storage(effective, self.unit)

        with _locks.hold(self.dimension, key), self.store.transaction() as s:
            current = self.store.find(s, self.dimension, key, current=True, for_update=True)
            if len(current) > 1:
                raise ConcurrentModification(
                    f"{self.dimension} {key!r} has {len(current)} current versions"
                )
            previous = current[0] if current else None

            if previous is None:
                if require_existing:
                    raise UnknownNaturalKey(self.dimension, key)
            else:
                if skip_if_unchanged and not candidate.changed_from(previous.attributes):
                    logger.debug("%s %s unchanged, no new version", self.dimension, key)
                    return None
                if start <= previous.valid_from:
                    raise OutOfOrderEffectiveDate(
                        key, effective, from_storage(previous.valid_from, self.unit)
                    )
                expired_n = self.store.expire(
                    s, previous.surrogate_id, expiry_for(start, self.unit, self.closed_end)
                )
                if expired_n != 1:
                    raise ConcurrentModification(
                        f"{self.dimension} {key!r}: version {previous.surrogate_id} "
                        "is no longer current"
                    )

            new_id = self.store.create(
                s,
                dimension=self.dimension,
                natural_key=key,
                attributes=payload,
                valid_from=start,
                valid_to=None,
                is_current=True,
            )
            if self.track_current_pointer:
                self.store.update_by_natural_key(
                    s, self.dimension, key, current_pointer=new_id
                )

            by_id = {row.surrogate_id: row for row in self.store.find(s, self.dimension, key)}
            created = self._snapshot(by_id[new_id])
            expired = self._snapshot(by_id[previous.surrogate_id]) if previous else None

        if expired is None:
            logger.info("%s %s registered as version %s", self.dimension, key, new_id)
            events.emit("create", created)
        else:
            logger.info(
                "%s %s: version %s expired, version %s current from %s",
                self.dimension,
                key,
                expired.surrogate_id,
                new_id,
                created.valid_from,
            )
            events.emit_all([("expire", expired), ("update", created)])
        return created

    def record_version(
        self,
        natural_key: NaturalKey,
        new_attributes: Attributes,
        effective: Moment,
        *,
        require_existing: bool = False,
    ) -> VersionedEntity:
        """`record_new_version`, returning the snapshot of the version it wrote."""
        return self._transition(
            natural_key, new_attributes, effective, require_existing=require_existing
        )

    def record_new_version(
        self,
        natural_key: NaturalKey,
        new_attributes: Attributes,
        effective: Moment,
        *,
        require_existing: bool = False,
    ) -> int:
        """
        Expire the current version of *natural_key* and insert a new one.

        Returns the new version's surrogate id. Identical attributes still
        produce a new version; use `record_if_changed` to skip no-ops.

        Raises `OutOfOrderEffectiveDate` when *effective* is not after the
        current version's ``valid_from``, `UnknownNaturalKey` when
        *require_existing* is set and the key has no versions, and
        `ConcurrentModification` when the current row moved underneath us.

        Event handlers run after commit: ``expire`` then ``update`` for a
        transition, ``create`` for a first registration. Every handler runs
        even if an earlier one raised; the first error is re-raised once
        they are all done, and the committed versions stay in place.
        """
        return self.record_version(
            natural_key, new_attributes, effective, require_existing=require_existing
        ).surrogate_id

    def record_if_changed(
        self, natural_key: NaturalKey, new_attributes: Attributes, effective: Moment
    ) -> int | None:
        """
        Like `record_new_version`, but returns ``None`` when nothing changed.

        The comparison is made against the row-locked current version inside
        the same transaction that would write the successor.
        """
        created = self._transition(
            natural_key, new_attributes, effective, skip_if_unchanged=True
        )
        return created.surrogate_id if created is not None else None

    def load_initial(
        self, rows: Iterable[Tuple[NaturalKey, Attributes, Moment]]
    ) -> List[int]:
        """
        Register many natural keys at once (initial load), all-or-nothing.

        Keys that already have a current version abort the whole load with
        `ConcurrentModification`.
        """
        batch = [(str(k), self._payload(a), to_storage(e, self.unit)) for k, a, e in rows]
        keys = sorted({key for key, _, _ in batch})
        created: List[VersionedEntity] = []

        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(_locks.hold(self.dimension, key))
            s = stack.enter_context(self.store.transaction())

            ids = []
            for key, payload, start in batch:
                if self.store.find(s, self.dimension, key, current=True, for_update=True):
                    raise ConcurrentModification(
                        f"{self.dimension} {key!r} is already registered"
                    )
                new_id = self.store.create(
                    s,
                    dimension=self.dimension,
                    natural_key=key,
                    attributes=payload,
                    valid_from=start,
                    valid_to=None,
                    is_current=True,
                    current_pointer=None,
                )
                if self.track_current_pointer:
                    self.store.update_by_natural_key(
                        s, self.dimension, key, current_pointer=new_id
                    )
                ids.append(new_id)

            for new_id in ids:
                created.append(self._snapshot(self.store.get(s, new_id)))

        logger.info("%s: initial load of %d versions", self.dimension, len(ids))
        events.emit_all([("create", version) for version in created])
        return ids

    # ---- reads ----------------------------------------------------------
    def current_version(self, natural_key: NaturalKey) -> VersionedEntity | None:
        """The current version, or ``None`` for an unknown key."""
        key = str(natural_key)
        with self.store.transaction() as s:
            row = None
            if self.track_current_pointer:
                anchor = self.store.first_row(s, self.dimension, key)
                if anchor is None:
                    return None
                if anchor.current_pointer is not None:
                    row = self.store.get(s, anchor.current_pointer)
            if row is None:
                rows = self.store.find(s, self.dimension, key, current=True)
                row = rows[0] if rows else None
            return self._snapshot(row) if row is not None else None

    def version_as_of(self, natural_key: NaturalKey, at: Moment) -> VersionedEntity | None:
        """The version whose validity interval contains *at* (as-is history)."""
        key = str(natural_key)
        with self.store.transaction() as s:
            rows = self.store.find(
                s,
                self.dimension,
                key,
                as_of=to_storage(at, self.unit),
                closed_end=self.closed_end,
            )
            logger.debug("%s %s as of %s: %d match(es)", self.dimension, key, at, len(rows))
            return self._snapshot(rows[0]) if rows else None

    def history(self, natural_key: NaturalKey) -> VersionHistory:
        """Every version ordered by ``valid_from``; re-reads on each iteration."""
        return VersionHistory(self.store, self.dimension, str(natural_key), self.unit)

    def current_versions(self) -> List[VersionedEntity]:
        """Current version of every natural key in the dimension."""
        return [self._snapshot(row) for row in self.store.current_rows(self.dimension)]

    def history_with_current(
        self, natural_key: NaturalKey
    ) -> List[Tuple[VersionedEntity, VersionedEntity | None]]:
        """
        Pair each historical version with the key's current version.

        In pointer mode the pairing follows ``current_pointer`` (the self-join
        a fact table would use); otherwise it uses the current flag.
        """
        key = str(natural_key)
        with self.store.transaction() as s:
            rows = [self._snapshot(r) for r in self.store.find(s, self.dimension, key)]
        by_id = {v.surrogate_id: v for v in rows}
        flagged = next((v for v in rows if v.is_current), None)

        pairs = []
        for version in rows:
            if self.track_current_pointer and version.current_pointer is not None:
                pairs.append((version, by_id.get(version.current_pointer)))
            else:
                pairs.append((version, flagged))
        return pairs

    def verify(self, natural_key: NaturalKey) -> List[str]:
        """Check the versioning invariants of one key; empty list means healthy."""
        key = str(natural_key)
        rows: Sequence[Any] = list(self.store.stream(self.dimension, key))
        problems: List[str] = []
        if not rows:
            return problems

        current = [r for r in rows if r.is_current]
        if len(current) != 1:
            problems.append(f"expected exactly one current version, found {len(current)}")
        elif current[0] is not rows[-1]:
            problems.append(f"current version {current[0].surrogate_id} is not the latest")

        for row in rows:
            if row.is_current != (row.valid_to is None):
                problems.append(
                    f"version {row.surrogate_id}: is_current={row.is_current} "
                    f"but valid_to={row.valid_to}"
                )
        for older, newer in zip(rows, rows[1:]):
            if older.valid_to is None:
                continue
            if successor_start(older.valid_to, self.unit, self.closed_end) != newer.valid_from:
                problems.append(
                    f"gap or overlap between versions {older.surrogate_id} "
                    f"and {newer.surrogate_id}"
                )
        if self.track_current_pointer and len(current) == 1:
            stale = [r.surrogate_id for r in rows if r.current_pointer != current[0].surrogate_id]
            if stale:
                problems.append(f"stale current_pointer on versions {stale}")

        for problem in problems:
            logger.warning("%s %s: %s", self.dimension, key, problem)
        return problems
