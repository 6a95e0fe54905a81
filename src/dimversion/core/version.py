"""
VersionedEntity – immutable snapshot of one historical version of an entity.

Pure Pydantic; built from a `VersionRow` by the manager.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict

from pydantic import BaseModel, Field, model_validator

from .intervals import Moment, TimeUnit, contains, from_storage, to_storage


class VersionedEntity(BaseModel):
    """One row per version. ``valid_to`` is unset exactly when current."""

    surrogate_id: int
    dimension: str
    natural_key: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    valid_from: Moment
    valid_to: Moment | None = None
    is_current: bool
    current_pointer: int | None = None
    recorded_at: dt.datetime | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _flag_matches_interval(self) -> "VersionedEntity":
        if self.is_current != (self.valid_to is None):
            raise ValueError(
                f"version {self.surrogate_id}: is_current={self.is_current} "
                f"disagrees with valid_to={self.valid_to}"
            )
        return self

    @classmethod
    def from_row(cls, row: Any, unit: TimeUnit) -> "VersionedEntity":
        return cls(
            surrogate_id=row.surrogate_id,
            dimension=row.dimension,
            natural_key=row.natural_key,
            attributes=dict(row.attributes or {}),
            valid_from=from_storage(row.valid_from, unit),
            valid_to=from_storage(row.valid_to, unit),
            is_current=row.is_current,
            current_pointer=row.current_pointer,
            recorded_at=row.recorded_at,
        )

    def contains(self, at: Moment, unit: TimeUnit, closed_end: bool = False) -> bool:
        """Does this version's validity interval include *at*?"""
        valid_to = None if self.valid_to is None else to_storage(self.valid_to, unit)
        return contains(
            to_storage(self.valid_from, unit),
            valid_to,
            to_storage(at, unit),
            closed_end,
        )
