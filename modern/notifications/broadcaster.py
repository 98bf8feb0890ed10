"""EventBroadcaster — singleton that fans entity-change events out to subscribers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from modern.notifications.subscribers import EventSubscriber

logger = logging.getLogger(__name__)

CONVERSATION_CREATED = "conversation_created"
CONVERSATION_UPDATED = "conversation_updated"
MESSAGE_CREATED = "message_created"
TASK_CREATED = "task_created"
TASK_UPDATED = "task_updated"
TASK_DELETED = "task_deleted"
KNOWLEDGE_CREATED = "knowledge_created"
KNOWLEDGE_DELETED = "knowledge_deleted"
SETTINGS_UPDATED = "settings_updated"


class EventBroadcaster:
    """Publishes ``{"type": ..., "data": ...}`` events to every subscriber.

    Publishing is fire-and-forget: there is no acknowledgement, and a
    subscriber that fails is dropped rather than reported to the caller.

    Singleton accessed via ``EventBroadcaster.get()``.
    """

    _instance: EventBroadcaster | None = None

    def __init__(self) -> None:
        self._subscribers: dict[str, EventSubscriber] = {}

    @classmethod
    def get(cls) -> EventBroadcaster:
        """Return the singleton instance, creating it if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton (for testing)."""
        cls._instance = None

    def subscribe(self, subscriber: EventSubscriber) -> None:
        """Register a subscriber. Raises ValueError on duplicate name."""
        if subscriber.name in self._subscribers:
            msg = f"Subscriber '{subscriber.name}' is already registered"
            raise ValueError(msg)
        self._subscribers[subscriber.name] = subscriber
        logger.debug("Subscriber connected: %s", subscriber.name)

    def unsubscribe(self, name: str) -> bool:
        """Remove a subscriber by name. Returns True if it was registered."""
        removed = self._subscribers.pop(name, None) is not None
        if removed:
            logger.debug("Subscriber disconnected: %s", name)
        return removed

    def list_subscribers(self) -> list[str]:
        return list(self._subscribers.keys())

    async def publish(self, event_type: str, payload: dict[str, Any]) -> int:
        """Send an event to all subscribers. Returns the number reached."""
        event = {"type": event_type, "data": payload}
        delivered = 0
        for name, subscriber in list(self._subscribers.items()):
            try:
                ok = await subscriber.deliver(event)
            except Exception:
                logger.exception("Subscriber %s failed on %s", name, event_type)
                ok = False
            if ok:
                delivered += 1
            else:
                self.unsubscribe(name)
        return delivered
