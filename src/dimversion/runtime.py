"""
dimversion.runtime  ──  A thin façade so loaders and web apps share one set of
managers per process.

Usage pattern in user code
--------------------------
    from dimversion import Dimensions

    app = Dimensions.create_app(db_url="postgresql://...", dimensions=["employee"])

    employees = Dimensions.instance().manager("employee")
    employees.record_new_version(101, {"department": "Marketing"}, date(2024, 5, 20))
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from .api import build_router, install_error_handlers
from .bootstrap import init_dimversion, make_engine
from .config import Settings
from .errors import UnknownDimension
from .manager import DimensionVersionManager

logger = logging.getLogger(__name__)


class Dimensions:
    """
    Process-wide registry of dimension managers. We keep a private singleton
    so application code doesn't have to pass engines and stores around.
    """

    _singleton: ClassVar[Optional["Dimensions"]] = None

    def __init__(self, engine: Engine, managers: Dict[str, DimensionVersionManager]):
        self.engine = engine
        self.managers = managers

    # ---------- one-shot initialiser ----------
    @classmethod
    def init(
        cls,
        *,
        database_url: str | None = None,
        engine: Engine | None = None,
        dimensions: Iterable[str] | Mapping[str, Mapping[str, Any]] = (),
        **defaults: Any,
    ) -> "Dimensions":
        if cls._singleton is None:
            if engine is None:
                if database_url is None:
                    raise ValueError("database_url or engine required")
                engine = make_engine(database_url)
            managers = init_dimversion(engine, dimensions, **defaults)
            cls._singleton = cls(engine, managers)
        return cls._singleton

    @classmethod
    def from_settings(cls, settings: Settings) -> "Dimensions":
        return cls.init(
            database_url=settings.database_url,
            dimensions=settings.dimensions,
            **settings.manager_options(),
        )

    # ---------- convenience helpers ----------
    @classmethod
    def instance(cls) -> "Dimensions":
        if cls._singleton is None:
            raise RuntimeError("Dimensions.init() has not been called")
        return cls._singleton

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton and release its connection pool."""
        if cls._singleton is not None:
            cls._singleton.engine.dispose()
        cls._singleton = None

    def manager(self, dimension: str) -> DimensionVersionManager:
        try:
            return self.managers[dimension]
        except KeyError:
            raise UnknownDimension(dimension) from None

    @classmethod
    def create_app(
        cls,
        name: str = "dimversion",
        *,
        db_url: str | None = None,
        engine: Engine | None = None,
        dimensions: Iterable[str] | Mapping[str, Mapping[str, Any]] = (),
        settings: Settings | None = None,
        **fastapi_kwargs: Any,
    ) -> FastAPI:
        """
        One-liner for web apps:
            app = Dimensions.create_app(db_url=URL, dimensions=["employee"])
        """
        if settings is not None:
            runtime = cls.from_settings(settings)
        else:
            runtime = cls.init(database_url=db_url, engine=engine, dimensions=dimensions)

        app = FastAPI(title=name, **fastapi_kwargs)

        @app.get("/health")
        def health() -> dict[str, Any]:
            return {"status": "running", "dimensions": sorted(runtime.managers)}

        app.include_router(build_router(runtime.manager))
        install_error_handlers(app)
        logger.info("%s app created for %d dimension(s)", name, len(runtime.managers))
        return app
