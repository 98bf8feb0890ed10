"""Entity-change notifications."""

from modern.notifications.broadcaster import EventBroadcaster
from modern.notifications.subscribers import EventSubscriber

__all__ = [
    "EventBroadcaster",
    "EventSubscriber",
]
