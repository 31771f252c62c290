"""
Minimal publish/subscribe fan-out for engine events.

Topics used by the engine:
- "tick": TickEvent, once per processed frame (presentation)
- "session_closed": SessionRecord, once per stopped session (persistence)
"""
from __future__ import annotations
from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)

TICK = "tick"
SESSION_CLOSED = "session_closed"

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.setdefault(topic, []).append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, payload: Any) -> int:
        """Deliver to every subscriber; a failing subscriber does not stop the others."""
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception(f"[events] subscriber failed on topic={topic}")
        return delivered
