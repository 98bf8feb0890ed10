"""Tests for keyword-triggered business context."""

from conftest import FakeCalendar, FakeEmail

from modern.integrations.google_auth import NotConnectedError
from modern.llm.enrichment import ContextSources, gather_business_context


def _email() -> FakeEmail:
    return FakeEmail(
        messages=[
            {
                "from": "ceo@acme.com",
                "subject": "Q3 numbers",
                "date": "Mon, 12 Oct 2026 09:00:00 +0000",
                "snippet": "Please review before Friday",
            },
        ]
        * 7,
        unread=3,
    )


def _calendar() -> FakeCalendar:
    return FakeCalendar(
        events=[
            {
                "summary": "Board Sync",
                "start": "2026-10-17T10:00:00Z",
                "location": "HQ Room 2",
                "attendees": ["a@acme.com", "b@acme.com"],
            },
        ]
    )


async def test_empty_message_makes_no_calls() -> None:
    email, calendar = _email(), _calendar()
    snapshot = await gather_business_context("", ContextSources(email, calendar))

    assert snapshot.is_empty
    assert snapshot.render() == ""
    assert email.calls == []
    assert calendar.calls == []


async def test_no_keywords_makes_no_calls() -> None:
    email, calendar = _email(), _calendar()
    snapshot = await gather_business_context("How are sales?", ContextSources(email, calendar))

    assert snapshot.is_empty
    assert email.calls == []
    assert calendar.calls == []


async def test_email_keyword_fetches_five_recent() -> None:
    email = _email()
    snapshot = await gather_business_context("Any new EMAIL?", ContextSources(email=email))

    assert email.calls == ["list_recent:5", "unread_count"]
    assert snapshot.email.unread_count == 3
    assert len(snapshot.email.items) == 5
    text = snapshot.render()
    assert text.startswith("Recent Email Context:")
    assert "You have 3 unread emails." in text
    assert "1. From: ceo@acme.com" in text
    assert "   Subject: Q3 numbers" in text
    assert "   Snippet: Please review before Friday" in text
    assert "6. From:" not in text


async def test_arabic_email_keyword() -> None:
    email = _email()
    snapshot = await gather_business_context("هل وصل بريد جديد؟", ContextSources(email=email))

    assert snapshot.email is not None
    assert snapshot.calendar is None


async def test_calendar_keyword_lists_events() -> None:
    calendar = _calendar()
    snapshot = await gather_business_context(
        "What's on my calendar this week?", ContextSources(calendar=calendar)
    )

    assert calendar.calls == [7]
    text = snapshot.render()
    assert text.startswith("Upcoming Calendar Events:")
    assert "1. Board Sync" in text
    assert "   When: 2026-10-17T10:00:00Z" in text
    assert "   Where: HQ Room 2" in text
    assert "   Attendees: 2 people" in text


async def test_arabic_calendar_keyword() -> None:
    calendar = _calendar()
    snapshot = await gather_business_context("متى الاجتماع القادم؟", ContextSources(calendar=calendar))
    assert snapshot.calendar is not None


async def test_calendar_with_no_events() -> None:
    snapshot = await gather_business_context(
        "any meeting?", ContextSources(calendar=FakeCalendar(events=[]))
    )
    assert "No upcoming events in the next 7 days." in snapshot.render()


async def test_both_blocks_separated_by_blank_line() -> None:
    snapshot = await gather_business_context(
        "check my inbox and my schedule",
        ContextSources(email=_email(), calendar=_calendar()),
    )

    text = snapshot.render()
    email_block, calendar_block = text.split("\n\nUpcoming Calendar Events:")
    assert email_block.startswith("Recent Email Context:")
    assert "Board Sync" in calendar_block


async def test_email_not_connected_keeps_calendar() -> None:
    email = FakeEmail(error=NotConnectedError("Gmail not connected"))
    snapshot = await gather_business_context(
        "email and calendar please",
        ContextSources(email=email, calendar=_calendar()),
    )

    assert snapshot.email is None
    assert snapshot.calendar is not None
    assert "Recent Email Context" not in snapshot.render()
    assert "Board Sync" in snapshot.render()


async def test_unexpected_failure_is_swallowed() -> None:
    calendar = FakeCalendar(error=RuntimeError("503 from Google"))
    snapshot = await gather_business_context("next meeting?", ContextSources(calendar=calendar))
    assert snapshot.is_empty


async def test_missing_source_is_treated_as_not_connected() -> None:
    snapshot = await gather_business_context("inbox?", ContextSources())
    assert snapshot.is_empty
