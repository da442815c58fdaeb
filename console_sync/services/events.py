"""
In-process event bus.

Sync passes publish their summaries here; whoever renders toasts
subscribes. The bus is constructed by the application and injected
into the components that publish.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from console_sync.models.events import Notification, NotificationType

logger = logging.getLogger(__name__)

Handler = Callable[[Notification], Union[None, Awaitable[None]]]

# Subscribing to this topic receives every notification
ALL_TOPICS = "*"

SYNC_KIND_COMPLETED = "sync.kind_completed"
SYNC_COMPLETED = "sync.completed"


class EventBus:
    """Topic-based publish/subscribe with sync or async handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers.get(topic, []):
                self._handlers[topic].remove(handler)

        return unsubscribe

    def handler_count(self, topic: Optional[str] = None) -> int:
        if topic is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(topic, []))

    async def publish(self, notification: Notification) -> None:
        """Deliver to topic handlers and wildcard handlers; handler failures are logged."""
        handlers = list(self._handlers.get(notification.topic, []))
        handlers += self._handlers.get(ALL_TOPICS, [])
        for handler in handlers:
            try:
                result = handler(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Event handler {getattr(handler, '__name__', handler)!r} failed for "
                             f"{notification.topic}: {e}", exc_info=True)

    async def notify(
        self,
        topic: str,
        type: NotificationType,
        message: str,
        duration: int = 5000,
        details: Optional[Dict[str, Any]] = None
    ) -> Notification:
        notification = Notification(topic=topic, type=type, message=message, duration=duration, details=details)
        await self.publish(notification)
        return notification
