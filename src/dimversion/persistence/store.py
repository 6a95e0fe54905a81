"""
Thin data-access layer around the `dimension_versions` table.

Writes run inside `RecordStore.transaction()`; the manager owns the unit of
work and passes the session in. Reads that stand alone open short-lived
sessions of their own.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List

from sqlalchemy import Select, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ..errors import ConcurrentModification, StoreUnavailable
from .models import Base, VersionRow

logger = logging.getLogger(__name__)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map driver failures onto the dimversion error kinds."""
    try:
        yield
    except IntegrityError as exc:
        raise ConcurrentModification(str(exc.orig or exc)) from exc
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailable(str(exc.orig or exc)) from exc


class RecordStore:
    """Thin data‑access layer around the `dimension_versions` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _new_session(self) -> Session:  # separate to keep pylint happy
        return Session(bind=self.engine, future=True)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """One atomic unit of work: commit on success, roll back on any error."""
        with translate_errors(), self._new_session() as s, s.begin():
            yield s

    # ---- writes ---------------------------------------------------------
    def create(self, s: Session, **values: Any) -> int:
        """Insert a version row and return its freshly assigned surrogate id."""
        row = VersionRow(**values)
        s.add(row)
        s.flush()
        return row.surrogate_id

    def expire(self, s: Session, surrogate_id: int, valid_to: dt.datetime) -> int:
        """
        Close one version, guarded by its current flag.

        Returns the number of rows touched (0 when someone else got there
        first).
        """
        q = (
            update(VersionRow)
            .where(VersionRow.surrogate_id == surrogate_id)
            .where(VersionRow.is_current.is_(True))
            .values(valid_to=valid_to, is_current=False)
        )
        return s.execute(q).rowcount

    def update_by_natural_key(
        self, s: Session, dimension: str, natural_key: str, **values: Any
    ) -> int:
        """Bulk update every version of one natural key."""
        q = (
            update(VersionRow)
            .where(VersionRow.dimension == dimension)
            .where(VersionRow.natural_key == natural_key)
            .values(**values)
        )
        return s.execute(q).rowcount

    # ---- reads ---------------------------------------------------------
    def _by_key(self, dimension: str, natural_key: str) -> Select:
        return (
            select(VersionRow)
            .where(VersionRow.dimension == dimension)
            .where(VersionRow.natural_key == natural_key)
        )

    def get(self, s: Session, surrogate_id: int) -> VersionRow | None:
        return s.get(VersionRow, surrogate_id, populate_existing=True)

    def find(
        self,
        s: Session,
        dimension: str,
        natural_key: str,
        *,
        current: bool | None = None,
        as_of: dt.datetime | None = None,
        closed_end: bool = False,
        for_update: bool = False,
    ) -> List[VersionRow]:
        """Versions of one key, optionally filtered, ordered by ``valid_from``."""
        q = self._by_key(dimension, natural_key)
        if current is not None:
            q = q.where(VersionRow.is_current.is_(current))
        if as_of is not None:
            end_ok = VersionRow.valid_to >= as_of if closed_end else VersionRow.valid_to > as_of
            q = q.where(VersionRow.valid_from <= as_of).where(
                or_(VersionRow.valid_to.is_(None), end_ok)
            )
        if for_update:
            q = q.with_for_update()
        q = q.order_by(VersionRow.valid_from, VersionRow.surrogate_id)
        return list(s.scalars(q.execution_options(populate_existing=True)))

    def first_row(self, s: Session, dimension: str, natural_key: str) -> VersionRow | None:
        """Any one row of the key (the oldest); enough to read its pointer."""
        q = self._by_key(dimension, natural_key).order_by(VersionRow.valid_from).limit(1)
        return s.scalars(q).first()

    def stream(self, dimension: str, natural_key: str) -> Iterator[VersionRow]:
        """Yield rows *oldest→newest* in a session of their own."""
        with translate_errors(), self._new_session() as s:
            q = self._by_key(dimension, natural_key).order_by(
                VersionRow.valid_from, VersionRow.surrogate_id
            )
            yield from s.scalars(q)

    def current_rows(self, dimension: str) -> List[VersionRow]:
        """Every current version of a dimension, ordered by natural key."""
        with translate_errors(), self._new_session() as s:
            q = (
                select(VersionRow)
                .where(VersionRow.dimension == dimension)
                .where(VersionRow.is_current.is_(True))
                .order_by(VersionRow.natural_key)
            )
            return list(s.scalars(q))


def init_store(engine: Engine) -> RecordStore:
    """Create the schema (idempotent) and return a store bound to *engine*."""
    with translate_errors():
        Base.metadata.create_all(engine)  # ← this line creates table
    logger.debug("dimension_versions schema ready on %s", engine.url)
    return RecordStore(engine)
