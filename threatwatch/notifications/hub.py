"""
ThreatWatch Notification Hub

Publish/subscribe registry for engine lifecycle notifications.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class Subscription:
    """Handle returned by ``NotificationHub.on``; call ``unsubscribe`` to detach."""

    def __init__(self, hub: "NotificationHub", event_name: str, handler: Handler):
        self.hub = hub
        self.event_name = event_name
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> bool:
        if not self.active:
            return False
        self.active = False
        return self.hub.off(self.event_name, self.handler)


class NotificationHub:
    """
    Typed handler registry keyed by notification name.

    Handlers run in registration order. Plain callables and coroutine
    functions are both accepted. A handler that raises is logged and does
    not stop delivery to the remaining handlers.
    """

    EVENTS = ("initialized", "threat_detected", "high_risk_threat")

    def __init__(self):
        """Initialize notification hub."""
        self._handlers: Dict[str, List[Handler]] = {name: [] for name in self.EVENTS}
        self._stats = {
            "delivered": 0,
            "failed": 0,
        }

    def on(self, event_name: str, handler: Handler) -> Subscription:
        """
        Register a handler.

        Args:
            event_name: One of ``EVENTS``
            handler: Callable receiving the notification payload

        Returns:
            Subscription handle
        """
        if event_name not in self._handlers:
            raise ValueError(
                f"Unknown notification '{event_name}', expected one of {', '.join(self.EVENTS)}"
            )
        if not callable(handler):
            raise TypeError("handler must be callable")

        self._handlers[event_name].append(handler)
        return Subscription(self, event_name, handler)

    def off(self, event_name: str, handler: Handler) -> bool:
        """
        Remove a handler.

        Returns:
            True if the handler was registered
        """
        handlers = self._handlers.get(event_name, [])
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        return True

    async def emit(self, event_name: str, payload: Any = None) -> int:
        """
        Deliver a notification to every handler registered for it.

        Returns:
            Number of handlers that completed without error
        """
        delivered = 0
        for handler in list(self._handlers.get(event_name, [])):
            try:
                outcome = handler(payload)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self._stats["failed"] += 1
                logger.error(f"Handler for '{event_name}' failed: {e}", exc_info=True)
                continue
            delivered += 1

        self._stats["delivered"] += delivered
        return delivered

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def get_stats(self) -> Dict[str, Any]:
        """Get delivery statistics."""
        return {
            **self._stats,
            "handlers": {name: len(h) for name, h in self._handlers.items()},
        }
