"""
dimversion.events  ──  Decorators for dimension-version lifecycle hooks

    @on.update("employee")
    def audit(version): ...

Handlers receive the `VersionedEntity` after the transition committed.
A handler that raises does not stop the others; the first error reaches the
caller once every handler has run.
``"*"`` subscribes a handler to every dimension.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, List, Sequence, Tuple

if TYPE_CHECKING:
    from .core.version import VersionedEntity

logger = logging.getLogger(__name__)

ANY_DIMENSION = "*"
EVENT_TYPES = ("create", "update", "expire")

Handler = Callable[["VersionedEntity"], None]


class EventRegistry:
    """Central registry for event handlers"""

    def __init__(self):
        # Maps event type -> dimension name -> handlers in registration order
        self._handlers: Dict[str, Dict[str, List[Handler]]] = {
            event_type: defaultdict(list) for event_type in EVENT_TYPES
        }

    def register(self, event_type: str, dimensions: tuple[str, ...], handler: Handler) -> None:
        """Register a handler for specific dimensions"""
        if event_type not in self._handlers:
            raise ValueError(f"unknown event type {event_type!r}")
        for dimension in dimensions or (ANY_DIMENSION,):
            if handler not in self._handlers[event_type][dimension]:
                self._handlers[event_type][dimension].append(handler)

    def _handlers_for(self, event_type: str, dimension: str) -> List[Handler]:
        by_dimension = self._handlers[event_type]
        handlers = list(by_dimension.get(dimension, ()))
        handlers += [h for h in by_dimension.get(ANY_DIMENSION, ()) if h not in handlers]
        return handlers

    def emit(self, event_type: str, version: VersionedEntity) -> None:
        """Emit event to all matching handlers"""
        self.emit_all([(event_type, version)])

    def emit_all(self, emitted: Sequence[Tuple[str, VersionedEntity]]) -> None:
        """
        Run the handlers of several events in order.

        A failing handler does not stop the ones after it, for this event or
        the following ones. The first error is re-raised at the end.
        """
        first_error: Exception | None = None
        for event_type, version in emitted:
            for handler in self._handlers_for(event_type, version.dimension):
                name = getattr(handler, "__name__", handler)
                logger.debug(
                    "%s %s/%s -> %s", event_type, version.dimension, version.natural_key, name
                )
                try:
                    handler(version)
                except Exception as exc:
                    logger.exception(
                        "%s handler %s failed for %s/%s",
                        event_type,
                        name,
                        version.dimension,
                        version.natural_key,
                    )
                    if first_error is None:
                        first_error = exc
        if first_error is not None:
            raise first_error

    def clear(self) -> None:
        for by_dimension in self._handlers.values():
            by_dimension.clear()


# Global registry instance
_registry = EventRegistry()


class OnDecorator:
    """Namespace for event decorators"""

    def __init__(self, registry: EventRegistry):
        self._registry = registry

    def _decorator(self, event_type: str, dimensions: tuple[str, ...]) -> Callable:
        def decorator(func: Handler) -> Handler:
            self._registry.register(event_type, dimensions, func)
            return func

        return decorator

    def create(self, *dimensions: str) -> Callable:
        """First version of a natural key was written."""
        return self._decorator("create", dimensions)

    def update(self, *dimensions: str) -> Callable:
        """A new current version superseded an older one."""
        return self._decorator("update", dimensions)

    def expire(self, *dimensions: str) -> Callable:
        """A version was closed; receives the expired snapshot."""
        return self._decorator("expire", dimensions)


# Export the decorator interface
on = OnDecorator(_registry)


def emit(event_type: str, version: VersionedEntity) -> None:
    _registry.emit(event_type, version)


def emit_all(emitted: Sequence[Tuple[str, VersionedEntity]]) -> None:
    _registry.emit_all(emitted)


def clear_handlers() -> None:
    """Drop every registered handler (used between tests)."""
    _registry.clear()
