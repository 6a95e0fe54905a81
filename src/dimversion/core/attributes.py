"""
Tracked-attribute payload carried by every dimension version.

* Subclass `AttributesBase` to declare typed tracked fields per dimension.
* Undeclared keys are kept (``extra="allow"``) so ad-hoc dimensions work too.
* `changed_from` is the change-detection helper used by loaders.
"""

from typing import Any, Dict, Mapping

from pydantic import BaseModel


class AttributesBase(BaseModel):
    model_config = {"extra": "allow", "frozen": True, "arbitrary_types_allowed": True}

    # ------------------------------------------------------------------ #
    # convenience helpers
    # ------------------------------------------------------------------ #
    @classmethod
    def coerce(cls, payload: Mapping[str, Any] | BaseModel) -> "AttributesBase":
        """Validate a mapping (or another model) into this attribute class."""
        if isinstance(payload, cls):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="python")
        return cls.model_validate(dict(payload))

    def as_json(self) -> Dict[str, Any]:
        """JSON-safe dict, the form persisted in the store."""
        return self.model_dump(mode="json")

    def changed_from(self, previous: Mapping[str, Any]) -> bool:
        """True when any tracked value differs from *previous*."""
        return self.as_json() != dict(previous)
