"""
Single entry-point that wires SQLAlchemy into dimversion.
Call once, e.g. in FastAPI startup or at the top of a batch loader.
"""

import logging
from typing import Any, Dict, Iterable, Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from .manager import DimensionVersionManager
from .persistence.store import init_store

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    """
    `create_engine` with the settings dimversion relies on.

    SQLite connections are shared across threads; an in-memory database is
    pinned to one connection so every session sees the same tables.
    """
    url = make_url(database_url)
    kwargs: Dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def init_dimversion(
    engine: Engine,
    dimensions: Iterable[str] | Mapping[str, Mapping[str, Any]],
    **defaults: Any,
) -> Dict[str, DimensionVersionManager]:
    """
    Create the schema, build the global RecordStore and one manager per
    dimension.

    *dimensions* is either a list of names sharing *defaults*, or a mapping of
    name → manager options overriding *defaults*.
    """
    store = init_store(engine)
    if not isinstance(dimensions, Mapping):
        dimensions = {name: {} for name in dimensions}

    managers = {
        name: DimensionVersionManager(store, name, **{**defaults, **options})
        for name, options in dimensions.items()
    }
    logger.info("dimversion ready: %s", ", ".join(sorted(managers)) or "no dimensions")
    return managers
