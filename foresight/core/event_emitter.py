"""Event emitter: typed publish/subscribe for manager events.

Listeners register per ``ForesightEventType``.  A failing listener is
logged and skipped so that one broken subscriber cannot stop the
others, or the engine, from running.  Producers should check
``has_listeners`` before building expensive payloads.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any

from foresight.models.events import ForesightEvent, ForesightEventType

logger = logging.getLogger(__name__)

EventListener = Callable[[ForesightEvent], Any]

_DEFAULT_HISTORY_MAXLEN: int = 200


class EventEmitter:
    """Dispatches ``ForesightEvent`` objects to registered listeners.

    Args:
        history_maxlen: Number of recent events kept for inspection.
    """

    def __init__(self, *, history_maxlen: int = _DEFAULT_HISTORY_MAXLEN) -> None:
        self._listeners: dict[ForesightEventType, list[EventListener]] = defaultdict(list)
        self._history: deque[ForesightEvent] = deque(maxlen=history_maxlen)

    def add_listener(self, event_type: ForesightEventType, listener: EventListener) -> None:
        """Subscribe *listener* to *event_type*."""
        self._listeners[event_type].append(listener)

    def remove_listener(self, event_type: ForesightEventType, listener: EventListener) -> None:
        """Unsubscribe *listener*; unknown listeners are ignored."""
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def has_listeners(self, event_type: ForesightEventType) -> bool:
        """Return whether anything is subscribed to *event_type*."""
        return bool(self._listeners.get(event_type))

    def emit(self, event: ForesightEvent) -> None:
        """Record *event* and deliver it to its listeners."""
        self._history.append(event)
        for listener in list(self._listeners.get(event.type, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed for %s", listener, event.type.value)

    def get_event_history(self, limit: int = 50) -> list[ForesightEvent]:
        """Return up to *limit* most recent events, oldest first."""
        if limit <= 0:
            return []
        return list(self._history)[-limit:]

    def clear(self) -> None:
        """Drop every listener and the history."""
        self._listeners.clear()
        self._history.clear()
