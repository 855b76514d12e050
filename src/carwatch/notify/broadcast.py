"""In-process publish/subscribe hub for live listing events.

Publishers run on scheduler worker threads; listeners are usually WebSocket
handlers on the web event loop. A message reaches only the listeners that
are subscribed at the moment of publishing.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

NOTIFICATIONS_TOPIC = "notifications"

Listener = Callable[[dict], None]


class BroadcastHub:
    """Thread-safe topic -> listeners registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def subscribe(self, topic: str, listener: Listener) -> Callable[[], None]:
        """Attach a listener to a topic. Returns a function that detaches it."""
        with self._lock:
            self._listeners.setdefault(topic, []).append(listener)
        logger.info("Listener subscribed to '%s'", topic)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(topic, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(topic, None)
            logger.info("Listener unsubscribed from '%s'", topic)

        return unsubscribe

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, []))

    def publish(self, topic: str, message: dict) -> int:
        """Hand a message to every current listener of a topic.

        A failing listener is logged and skipped. Returns the number of
        listeners the message was handed to.
        """
        with self._lock:
            snapshot = list(self._listeners.get(topic, []))

        delivered = 0
        for listener in snapshot:
            try:
                listener(message)
                delivered += 1
            except Exception:
                logger.exception("Broadcast listener on '%s' failed", topic)
        return delivered
