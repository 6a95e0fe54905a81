"""
Exception hierarchy raised by the versioning manager and the record store.

Every failure aborts the whole transition; nothing is half-applied.
"""

from __future__ import annotations

from typing import Any


class DimensionError(Exception):
    """Base class for every dimversion failure."""


class OutOfOrderEffectiveDate(DimensionError):
    """Transition date is not after the start of the current version."""

    def __init__(self, natural_key: str, effective: Any, current_from: Any):
        self.natural_key = natural_key
        self.effective = effective
        self.current_from = current_from
        super().__init__(
            f"effective {effective} for key {natural_key!r} is not after "
            f"the current version's valid_from {current_from}"
        )


class ConcurrentModification(DimensionError):
    """The current row changed between read and write; retry the transition."""


class StoreUnavailable(DimensionError):
    """The underlying record store failed (raised ``from`` the driver error)."""


class UnknownNaturalKey(DimensionError, LookupError):
    def __init__(self, dimension: str, natural_key: str):
        self.dimension = dimension
        self.natural_key = natural_key
        super().__init__(f"{dimension} {natural_key!r} has no versions")


class UnknownDimension(DimensionError, LookupError):
    def __init__(self, dimension: str):
        self.dimension = dimension
        super().__init__(f"dimension {dimension!r} is not configured")
