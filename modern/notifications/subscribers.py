"""EventSubscriber protocol — interface for anything that receives entity events."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class EventSubscriber(Protocol):
    """Protocol that all event subscribers must satisfy."""

    @property
    def name(self) -> str:
        """Identifier used in logs (e.g. 'ws-3f2a')."""
        ...

    async def deliver(self, event: dict[str, Any]) -> bool:
        """Deliver one event. Returns False if the subscriber is gone."""
        ...
