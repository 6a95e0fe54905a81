"""
Public surface for dimversion.
Importing this module does **not** touch the database; call
`Dimensions.init(...)` (or `init_dimversion(engine, ...)`) during start-up.
"""

from .bootstrap import init_dimversion, make_engine
from .core.attributes import AttributesBase
from .core.intervals import TimeUnit
from .core.version import VersionedEntity
from .errors import (
    ConcurrentModification,
    DimensionError,
    OutOfOrderEffectiveDate,
    StoreUnavailable,
    UnknownDimension,
    UnknownNaturalKey,
)
from .events import on
from .manager import DimensionVersionManager, VersionHistory
from .runtime import Dimensions

__all__ = [
    "AttributesBase",
    "ConcurrentModification",
    "DimensionError",
    "DimensionVersionManager",
    "Dimensions",
    "OutOfOrderEffectiveDate",
    "StoreUnavailable",
    "TimeUnit",
    "UnknownDimension",
    "UnknownNaturalKey",
    "VersionHistory",
    "VersionedEntity",
    "init_dimversion",
    "make_engine",
    "on",
]
