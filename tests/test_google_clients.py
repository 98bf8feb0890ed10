"""Tests for the Gmail and Calendar connectors."""

import base64
from email import message_from_bytes
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from modern.integrations.calendar import CalendarClient
from modern.integrations.gmail import GmailClient
from modern.integrations.google_auth import NotConnectedError


def _http_error(status: int) -> HttpError:
    return HttpError(MagicMock(status=status, reason="error"), b"")


def _make_message(msg_id: str = "msg1", subject: str = "Test", sender: str = "a@b.com"):
    """Build a minimal Gmail API message dict."""
    return {
        "id": msg_id,
        "threadId": "thread1",
        "snippet": "preview text",
        "labelIds": ["INBOX", "UNREAD"],
        "payload": {
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
                {"name": "To", "value": "me@test.com"},
                {"name": "Date", "value": "Mon, 1 Jan 2025 00:00:00 +0000"},
            ],
        },
    }


@pytest.fixture
def gmail_service():
    auth = MagicMock()
    service = MagicMock()
    auth.gmail.return_value = service
    return GmailClient(auth), service


@pytest.fixture
def calendar_service():
    auth = MagicMock()
    service = MagicMock()
    auth.calendar.return_value = service
    return CalendarClient(auth), service


class TestGmailListRecent:
    async def test_returns_formatted_messages(self, gmail_service):
        client, service = gmail_service
        service.users().messages().list().execute.return_value = {
            "messages": [{"id": "msg1"}],
        }
        service.users().messages().get().execute.return_value = _make_message()

        messages = await client.list_recent(5)

        assert messages == [
            {
                "id": "msg1",
                "thread_id": "thread1",
                "from": "a@b.com",
                "to": "me@test.com",
                "subject": "Test",
                "date": "Mon, 1 Jan 2025 00:00:00 +0000",
                "snippet": "preview text",
                "labels": ["INBOX", "UNREAD"],
            }
        ]
        service.users().messages().list.assert_called_with(
            userId="me", maxResults=5, q=None
        )

    async def test_empty_inbox(self, gmail_service):
        client, service = gmail_service
        service.users().messages().list().execute.return_value = {}

        assert await client.list_recent() == []

    async def test_passes_query(self, gmail_service):
        client, service = gmail_service
        service.users().messages().list().execute.return_value = {}

        await client.list_recent(10, query="from:boss")

        service.users().messages().list.assert_called_with(
            userId="me", maxResults=10, q="from:boss"
        )

    async def test_not_connected(self):
        auth = MagicMock()
        auth.gmail.side_effect = NotConnectedError("Google is not connected")
        with pytest.raises(NotConnectedError):
            await GmailClient(auth).list_recent()


class TestGmailUnreadCount:
    async def test_reads_size_estimate(self, gmail_service):
        client, service = gmail_service
        service.users().messages().list().execute.return_value = {"resultSizeEstimate": 12}

        assert await client.unread_count() == 12
        service.users().messages().list.assert_called_with(
            userId="me", q="is:unread", maxResults=1
        )

    async def test_missing_estimate_is_zero(self, gmail_service):
        client, service = gmail_service
        service.users().messages().list().execute.return_value = {}

        assert await client.unread_count() == 0


class TestCalendarListUpcoming:
    async def test_formats_events(self, calendar_service):
        client, service = calendar_service
        service.events().list().execute.return_value = {
            "items": [
                {
                    "id": "e1",
                    "summary": "Board Sync",
                    "start": {"dateTime": "2026-10-17T09:00:00Z"},
                    "end": {"dateTime": "2026-10-17T10:00:00Z"},
                    "location": "HQ",
                    "attendees": [{"email": "a@acme.com"}, {"displayName": "Room"}],
                },
                {
                    "id": "e2",
                    "start": {"date": "2026-10-18"},
                    "end": {"date": "2026-10-19"},
                },
            ]
        }

        events = await client.list_upcoming(7)

        assert events[0]["summary"] == "Board Sync"
        assert events[0]["start"] == "2026-10-17T09:00:00Z"
        assert events[0]["attendees"] == ["a@acme.com"]
        assert events[1]["summary"] == "(no title)"
        assert events[1]["start"] == "2026-10-18"
        assert events[1]["location"] == ""

    async def test_queries_primary_calendar_in_order(self, calendar_service):
        client, service = calendar_service
        service.events().list().execute.return_value = {}

        assert await client.list_upcoming(3) == []

        kwargs = service.events().list.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["singleEvents"] is True
        assert kwargs["orderBy"] == "startTime"
        assert kwargs["timeMin"] < kwargs["timeMax"]


class TestGmailGetMessage:
    async def test_includes_plain_body(self, gmail_service):
        client, service = gmail_service
        msg = _make_message()
        msg["payload"]["parts"] = [
            {"mimeType": "text/html", "body": {"data": "PGI-aGk8L2I-"}},
            {
                "mimeType": "text/plain",
                "body": {"data": base64.urlsafe_b64encode("مرحبا".encode()).decode()},
            },
        ]
        service.users().messages().get().execute.return_value = msg

        message = await client.get_message("msg1")

        assert message["subject"] == "Test"
        assert message["body"] == "مرحبا"
        service.users().messages().get.assert_called_with(
            userId="me", id="msg1", format="full"
        )

    async def test_single_part_body(self, gmail_service):
        client, service = gmail_service
        msg = _make_message()
        msg["payload"]["body"] = {"data": base64.urlsafe_b64encode(b"Hello").decode()}
        service.users().messages().get().execute.return_value = msg

        assert (await client.get_message("msg1"))["body"] == "Hello"

    async def test_unknown_id_returns_none(self, gmail_service):
        client, service = gmail_service
        service.users().messages().get().execute.side_effect = _http_error(404)

        assert await client.get_message("nope") is None

    async def test_other_http_errors_propagate(self, gmail_service):
        client, service = gmail_service
        service.users().messages().get().execute.side_effect = _http_error(500)

        with pytest.raises(HttpError):
            await client.get_message("msg1")


class TestGmailSendMessage:
    async def test_sends_encoded_message(self, gmail_service):
        client, service = gmail_service
        service.users().messages().send().execute.return_value = {
            "id": "s1",
            "threadId": "t9",
        }

        result = await client.send_message(
            "ceo@acme.com", "Q3", "Numbers attached.", cc="cfo@acme.com"
        )

        assert result == {"id": "s1", "thread_id": "t9"}
        kwargs = service.users().messages().send.call_args.kwargs
        assert kwargs["userId"] == "me"
        sent = message_from_bytes(base64.urlsafe_b64decode(kwargs["body"]["raw"]))
        assert sent["to"] == "ceo@acme.com"
        assert sent["subject"] == "Q3"
        assert sent["cc"] == "cfo@acme.com"
        assert sent["bcc"] is None
        assert sent.get_payload(decode=True).decode() == "Numbers attached."


def _api_event(event_id: str = "e1", **extra):
    event = {
        "id": event_id,
        "summary": "Board Sync",
        "start": {"dateTime": "2026-10-17T09:00:00Z"},
        "end": {"dateTime": "2026-10-17T10:00:00Z"},
        "htmlLink": "https://calendar.google.com/event?eid=e1",
    }
    event.update(extra)
    return event


class TestCalendarListEvents:
    async def test_passes_limit_and_start(self, calendar_service):
        client, service = calendar_service
        service.events().list().execute.return_value = {"items": [_api_event()]}

        events = await client.list_events(5, time_min="2026-10-01T00:00:00Z")

        assert events[0]["html_link"].startswith("https://calendar.google.com")
        kwargs = service.events().list.call_args.kwargs
        assert kwargs["maxResults"] == 5
        assert kwargs["timeMin"] == "2026-10-01T00:00:00Z"
        assert kwargs["orderBy"] == "startTime"

    async def test_defaults_to_now(self, calendar_service):
        client, service = calendar_service
        service.events().list().execute.return_value = {}

        assert await client.list_events() == []
        assert service.events().list.call_args.kwargs["timeMin"]


class TestCalendarEditing:
    async def test_get_event(self, calendar_service):
        client, service = calendar_service
        service.events().get().execute.return_value = _api_event()

        assert (await client.get_event("e1"))["summary"] == "Board Sync"

    @pytest.mark.parametrize("status", [404, 410])
    async def test_get_missing_event(self, calendar_service, status):
        client, service = calendar_service
        service.events().get().execute.side_effect = _http_error(status)

        assert await client.get_event("gone") is None

    async def test_create_event_body(self, calendar_service):
        client, service = calendar_service
        service.events().insert().execute.return_value = _api_event()

        event = await client.create_event(
            "Board Sync",
            "2026-10-17T09:00:00Z",
            "2026-10-17T10:00:00Z",
            location="HQ",
            attendees=["a@acme.com"],
        )

        assert event["id"] == "e1"
        body = service.events().insert.call_args.kwargs["body"]
        assert body == {
            "summary": "Board Sync",
            "start": {"dateTime": "2026-10-17T09:00:00Z", "timeZone": "UTC"},
            "end": {"dateTime": "2026-10-17T10:00:00Z", "timeZone": "UTC"},
            "location": "HQ",
            "attendees": [{"email": "a@acme.com"}],
        }

    async def test_update_patches_only_given_fields(self, calendar_service):
        client, service = calendar_service
        service.events().patch().execute.return_value = _api_event(location="Room 4")

        event = await client.update_event("e1", location="Room 4")

        assert event["location"] == "Room 4"
        kwargs = service.events().patch.call_args.kwargs
        assert kwargs["eventId"] == "e1"
        assert kwargs["body"] == {"location": "Room 4"}

    async def test_update_rejects_unknown_field(self, calendar_service):
        client, _ = calendar_service
        with pytest.raises(ValueError, match="Cannot update event field"):
            await client.update_event("e1", colorId="5")

    async def test_update_missing_event(self, calendar_service):
        client, service = calendar_service
        service.events().patch().execute.side_effect = _http_error(404)

        assert await client.update_event("gone", summary="x") is None

    async def test_delete_event(self, calendar_service):
        client, service = calendar_service
        service.events().delete().execute.return_value = ""

        assert await client.delete_event("e1") is True
        service.events().delete.assert_called_with(calendarId="primary", eventId="e1")

    async def test_delete_missing_event(self, calendar_service):
        client, service = calendar_service
        service.events().delete().execute.side_effect = _http_error(410)

        assert await client.delete_event("gone") is False
