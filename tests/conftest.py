"""Shared test fixtures."""

from pathlib import Path
from typing import Any

import pytest

from modern.notifications.broadcaster import EventBroadcaster
from modern.store.entities import EntityStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("modern.config.settings.turso_database_url", "")


@pytest.fixture
def store(tmp_path: Path, _no_turso) -> EntityStore:
    """An EntityStore backed by a temp database."""
    return EntityStore(db_path=tmp_path / "test.db")


@pytest.fixture
def broadcaster():
    """A fresh broadcaster, isolated from the singleton."""
    EventBroadcaster._reset()
    yield EventBroadcaster()
    EventBroadcaster._reset()


class RecordingSubscriber:
    """Collects every event it receives."""

    def __init__(self, subscriber_name: str = "recorder") -> None:
        self._name = subscriber_name
        self.events: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, event: dict[str, Any]) -> bool:
        self.events.append(event)
        return True


class FakeEmail:
    """In-memory stand-in for GmailClient."""

    def __init__(self, messages: list[dict] | None = None, unread: int = 0, error=None) -> None:
        self.messages = messages or []
        self.unread = unread
        self.error = error
        self.calls: list[str] = []
        self.sent: list[dict] = []

    def _record(self, call: str) -> None:
        self.calls.append(call)
        if self.error:
            raise self.error

    async def list_recent(self, limit: int = 20, query: str = "") -> list[dict]:
        self._record(f"list_recent:{limit}")
        return self.messages[:limit]

    async def get_message(self, message_id: str) -> dict | None:
        self._record(f"get_message:{message_id}")
        return next((m for m in self.messages if m.get("id") == message_id), None)

    async def send_message(self, to, subject, body, cc=None, bcc=None) -> dict:
        self._record("send_message")
        self.sent.append({"to": to, "subject": subject, "body": body, "cc": cc, "bcc": bcc})
        return {"id": f"sent{len(self.sent)}", "thread_id": "t1"}

    async def unread_count(self) -> int:
        self._record("unread_count")
        return self.unread


class FakeCalendar:
    """In-memory stand-in for CalendarClient."""

    def __init__(self, events: list[dict] | None = None, error=None) -> None:
        self.events = events or []
        self.error = error
        self.calls: list = []

    def _check(self) -> None:
        if self.error:
            raise self.error

    def _find(self, event_id: str) -> dict | None:
        return next((e for e in self.events if e.get("id") == event_id), None)

    async def list_upcoming(self, days: int = 7) -> list[dict]:
        self.calls.append(days)
        self._check()
        return self.events

    async def list_events(self, max_results: int = 20, time_min: str | None = None) -> list[dict]:
        self.calls.append(("list_events", max_results, time_min))
        self._check()
        return self.events[:max_results]

    async def get_event(self, event_id: str) -> dict | None:
        self._check()
        return self._find(event_id)

    async def create_event(self, summary, start, end, description=None, location=None,
                           attendees=None) -> dict:
        self._check()
        event = {
            "id": f"e{len(self.events) + 1}",
            "summary": summary,
            "start": start,
            "end": end,
            "description": description or "",
            "location": location or "",
            "attendees": attendees or [],
        }
        self.events.append(event)
        return event

    async def update_event(self, event_id: str, **changes) -> dict | None:
        self._check()
        event = self._find(event_id)
        if event is not None:
            event.update(changes)
        return event

    async def delete_event(self, event_id: str) -> bool:
        self._check()
        event = self._find(event_id)
        if event is None:
            return False
        self.events.remove(event)
        return True
