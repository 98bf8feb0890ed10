"""Google Calendar connector: events on the owner's primary calendar."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from googleapiclient.errors import HttpError

from modern.integrations.google_auth import GoogleAuthManager

logger = logging.getLogger(__name__)

_CALENDAR_ID = "primary"
_NOT_FOUND = 404
_GONE = 410

# Event fields a caller may set on create or update.
EVENT_FIELDS = ("summary", "description", "start", "end", "location", "attendees")


def _format_event(event: dict[str, Any]) -> dict[str, Any]:
    """Normalise a Calendar API event into a consistent dict."""
    start = event.get("start", {})
    end = event.get("end", {})
    return {
        "id": event["id"],
        "summary": event.get("summary", "(no title)"),
        "start": start.get("dateTime", start.get("date", "")),
        "end": end.get("dateTime", end.get("date", "")),
        "location": event.get("location", ""),
        "description": event.get("description", ""),
        "attendees": [a["email"] for a in event.get("attendees", []) if a.get("email")],
        "html_link": event.get("htmlLink", ""),
    }


def _event_body(fields: dict[str, Any]) -> dict[str, Any]:
    """Build a Calendar API request body from flat event fields.

    Times are ISO 8601 strings interpreted in UTC unless they carry an offset.
    Only keys present in *fields* appear in the body.
    """
    body: dict[str, Any] = {}
    for key in ("summary", "description", "location"):
        if key in fields:
            body[key] = fields[key]
    for key in ("start", "end"):
        if key in fields:
            body[key] = {"dateTime": fields[key], "timeZone": "UTC"}
    if "attendees" in fields:
        body["attendees"] = [{"email": e} for e in fields["attendees"] or []]
    return body


class CalendarClient:
    """Reads and edits events.

    Raises :class:`~modern.integrations.google_auth.NotConnectedError` when
    no Google account has been authorised.
    """

    def __init__(self, auth: GoogleAuthManager | None = None) -> None:
        self._auth = auth

    def _service(self):  # noqa: ANN202
        return (self._auth or GoogleAuthManager.get()).calendar()

    async def list_events(
        self, max_results: int = 20, time_min: str | None = None
    ) -> list[dict[str, Any]]:
        """Return up to *max_results* events starting from *time_min* (default now)."""
        service = self._service()
        start = time_min or datetime.now(UTC).isoformat()

        result = await asyncio.to_thread(
            lambda: service.events()
            .list(
                calendarId=_CALENDAR_ID,
                maxResults=max_results,
                timeMin=start,
                singleEvents=True,
                orderBy="startTime",
            )
            .execute()
        )
        return [_format_event(e) for e in result.get("items", [])]

    async def list_upcoming(self, days: int = 7) -> list[dict[str, Any]]:
        """Return events starting between now and *days* from now."""
        service = self._service()
        now = datetime.now(UTC)
        time_max = now + timedelta(days=days)

        result = await asyncio.to_thread(
            lambda: service.events()
            .list(
                calendarId=_CALENDAR_ID,
                timeMin=now.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                orderBy="startTime",
            )
            .execute()
        )

        events = [_format_event(e) for e in result.get("items", [])]
        logger.debug("Fetched %d calendar event(s) for the next %d day(s)", len(events), days)
        return events

    async def get_event(self, event_id: str) -> dict[str, Any] | None:
        """Return one event, or None if it does not exist."""
        service = self._service()
        try:
            event = await asyncio.to_thread(
                lambda: service.events()
                .get(calendarId=_CALENDAR_ID, eventId=event_id)
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status in (_NOT_FOUND, _GONE):
                return None
            raise
        return _format_event(event)

    async def create_event(
        self,
        summary: str,
        start: str,
        end: str,
        description: str | None = None,
        location: str | None = None,
        attendees: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create an event and return it."""
        service = self._service()
        fields: dict[str, Any] = {"summary": summary, "start": start, "end": end}
        if description:
            fields["description"] = description
        if location:
            fields["location"] = location
        if attendees:
            fields["attendees"] = attendees
        body = _event_body(fields)

        event = await asyncio.to_thread(
            lambda: service.events().insert(calendarId=_CALENDAR_ID, body=body).execute()
        )
        logger.info("Created event: %s", event["id"])
        return _format_event(event)

    async def update_event(self, event_id: str, **changes: Any) -> dict[str, Any] | None:
        """Patch the given fields of an event. Returns None if it does not exist.

        Raises:
            ValueError: If *changes* names a field that cannot be set.
        """
        unknown = set(changes) - set(EVENT_FIELDS)
        if unknown:
            msg = f"Cannot update event field(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        service = self._service()
        body = _event_body(changes)
        try:
            event = await asyncio.to_thread(
                lambda: service.events()
                .patch(calendarId=_CALENDAR_ID, eventId=event_id, body=body)
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status in (_NOT_FOUND, _GONE):
                return None
            raise
        logger.info("Updated event: %s", event_id)
        return _format_event(event)

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event. Returns False if it did not exist."""
        service = self._service()
        try:
            await asyncio.to_thread(
                lambda: service.events()
                .delete(calendarId=_CALENDAR_ID, eventId=event_id)
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status in (_NOT_FOUND, _GONE):
                return False
            raise
        logger.info("Deleted event: %s", event_id)
        return True
