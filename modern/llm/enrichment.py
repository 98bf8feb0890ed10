"""Keyword-triggered business context from Gmail and Google Calendar.

Each user turn is checked against a small table of bilingual keyword sets.
A match fetches a cheap snapshot from the matching connector and renders it
as a text block for the system prompt.  Any fetch failure (connector not
connected, API error) drops that block and the turn carries on without it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from modern.config import settings
from modern.integrations.google_auth import NotConnectedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

EMAIL_KEYWORDS = frozenset({
    "email", "mail", "inbox",
    "بريد", "رسائل", "رسالة", "إيميل", "ايميل",
})

CALENDAR_KEYWORDS = frozenset({
    "calendar", "meeting", "schedule", "event",
    "تقويم", "اجتماع", "موعد", "مواعيد", "جدول",
})


class EmailSource(Protocol):
    async def list_recent(self, limit: int = 20, query: str = "") -> list[dict[str, Any]]: ...

    async def unread_count(self) -> int: ...


class CalendarSource(Protocol):
    async def list_upcoming(self, days: int = 7) -> list[dict[str, Any]]: ...


# -- Snapshot ----------------------------------------------------------------


@dataclass
class EmailItem:
    sender: str
    subject: str
    date: str
    snippet: str


@dataclass
class EmailSummary:
    unread_count: int
    items: list[EmailItem] = field(default_factory=list)

    def render(self) -> str:
        lines = [
            "Recent Email Context:",
            f"You have {self.unread_count} unread emails.",
            "Recent emails:",
        ]
        for i, item in enumerate(self.items, 1):
            lines.append(f"{i}. From: {item.sender}")
            lines.append(f"   Subject: {item.subject}")
            lines.append(f"   Date: {item.date}")
            lines.append(f"   Snippet: {item.snippet}")
        return "\n".join(lines)


@dataclass
class CalendarItem:
    summary: str
    start: str
    location: str = ""
    attendee_count: int = 0


@dataclass
class CalendarSummary:
    days: int
    items: list[CalendarItem] = field(default_factory=list)

    def render(self) -> str:
        lines = ["Upcoming Calendar Events:"]
        if not self.items:
            lines.append(f"No upcoming events in the next {self.days} days.")
        for i, item in enumerate(self.items, 1):
            lines.append(f"{i}. {item.summary}")
            lines.append(f"   When: {item.start}")
            if item.location:
                lines.append(f"   Where: {item.location}")
            if item.attendee_count:
                lines.append(f"   Attendees: {item.attendee_count} people")
        return "\n".join(lines)


@dataclass
class EnrichmentSnapshot:
    """Business data gathered for a single turn. Never persisted."""

    email: EmailSummary | None = None
    calendar: CalendarSummary | None = None

    @property
    def is_empty(self) -> bool:
        return self.email is None and self.calendar is None

    def render(self) -> str:
        """Render the gathered blocks, separated by a blank line."""
        blocks = [s.render() for s in (self.email, self.calendar) if s is not None]
        return "\n\n".join(blocks)


# -- Fetchers ----------------------------------------------------------------


@dataclass
class ContextSources:
    """The connectors enrichment may call. ``None`` means not configured."""

    email: EmailSource | None = None
    calendar: CalendarSource | None = None


async def _fetch_email(sources: ContextSources, snapshot: EnrichmentSnapshot) -> None:
    if sources.email is None:
        raise NotConnectedError("No email connector configured")
    recent = await sources.email.list_recent(settings.enrichment_email_limit)
    unread = await sources.email.unread_count()
    snapshot.email = EmailSummary(
        unread_count=unread,
        items=[
            EmailItem(
                sender=m.get("from", ""),
                subject=m.get("subject", ""),
                date=m.get("date", ""),
                snippet=m.get("snippet", ""),
            )
            for m in recent
        ],
    )


async def _fetch_calendar(sources: ContextSources, snapshot: EnrichmentSnapshot) -> None:
    if sources.calendar is None:
        raise NotConnectedError("No calendar connector configured")
    days = settings.enrichment_calendar_days
    events = await sources.calendar.list_upcoming(days)
    snapshot.calendar = CalendarSummary(
        days=days,
        items=[
            CalendarItem(
                summary=e.get("summary", "(no title)"),
                start=e.get("start", ""),
                location=e.get("location") or "",
                attendee_count=len(e.get("attendees") or []),
            )
            for e in events
        ],
    )


@dataclass(frozen=True)
class EnrichmentRule:
    name: str
    keywords: frozenset[str]
    fetch: Callable[[ContextSources, EnrichmentSnapshot], Awaitable[None]]

    def matches(self, lowered: str) -> bool:
        return any(keyword in lowered for keyword in self.keywords)


RULES: tuple[EnrichmentRule, ...] = (
    EnrichmentRule("email", EMAIL_KEYWORDS, _fetch_email),
    EnrichmentRule("calendar", CALENDAR_KEYWORDS, _fetch_calendar),
)


async def gather_business_context(
    user_message: str, sources: ContextSources
) -> EnrichmentSnapshot:
    """Fetch whichever snapshots *user_message* asks about.

    Rules are independent: a message can trigger both, one, or neither.
    Failures are logged and leave the corresponding part of the snapshot
    empty.
    """
    snapshot = EnrichmentSnapshot()
    if not user_message:
        return snapshot

    lowered = user_message.lower()
    for rule in RULES:
        if not rule.matches(lowered):
            continue
        try:
            await rule.fetch(sources, snapshot)
        except NotConnectedError as exc:
            logger.info("Skipping %s context: %s", rule.name, exc)
        except Exception:
            logger.warning("Failed to fetch %s context", rule.name, exc_info=True)
        else:
            logger.info("Added %s context to prompt", rule.name)

    return snapshot
