"""In-process listener registry.

Owned by a dispatcher instance; there is no module-level registry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from portal_workflow.engine.events import Event
from portal_workflow.engine.vocabulary import EventType, normalize_event_type

logger = logging.getLogger(__name__)

# A listener may be a plain function or an ``async def``; the dispatcher awaits the latter.
Listener = Callable[[Event], object]


class ListenerRegistry:
    """Event type -> ordered listeners, at most once each."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event_type: str | EventType, listener: Listener) -> None:
        key = normalize_event_type(event_type)
        with self._lock:
            registered = self._listeners.setdefault(key, [])
            # Bound methods compare equal when they wrap the same function and instance.
            if any(existing == listener for existing in registered):
                return
            registered.append(listener)
        logger.debug("Listener registered", extra={"event_type": key, "listener": describe(listener)})

    def off(self, event_type: str | EventType, listener: Listener) -> None:
        key = normalize_event_type(event_type)
        with self._lock:
            registered = self._listeners.get(key)
            if not registered:
                return
            remaining = [existing for existing in registered if existing != listener]
            if remaining:
                self._listeners[key] = remaining
            else:
                del self._listeners[key]

    def listeners(self, event_type: str | EventType) -> tuple[Listener, ...]:
        """Snapshot of listeners for ``event_type`` in registration order."""

        with self._lock:
            return tuple(self._listeners.get(normalize_event_type(event_type), ()))

    def event_types(self) -> list[str]:
        with self._lock:
            return sorted(self._listeners)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


def describe(listener: Listener) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)
