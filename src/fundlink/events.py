"""Observer registry for state-change notifications.

Payloads:
    basket_changed  {"count": int}
    header_refresh  free-form dict of header options
    navigate        {"module": str, "params": dict}
"""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

BASKET_CHANGED = "basket_changed"
HEADER_REFRESH = "header_refresh"
NAVIGATE = "navigate"

Listener = Callable[[dict], Any]


class EventHub:
    """Named notifications that a rendering shell subscribes to."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register listener for event. Returns a function that unsubscribes it."""
        self._listeners[event].append(listener)

        def unsubscribe():
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: dict) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Listener for {event} failed")
