"""Conversation turns: user message in, persisted assistant reply out.

A turn moves through these states::

    received → persisted_user → context_built → completed
             → persisted_assistant → done

``failed`` replaces ``completed`` when the completion call fails; the turn
then stores a fallback reply and still finishes.  Store errors are not
states: they propagate out of :meth:`ConversationOrchestrator.handle_turn`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from modern.llm.client import generate_reply
from modern.llm.enrichment import ContextSources, EnrichmentSnapshot, gather_business_context
from modern.llm.language import detect_language, speech_locale, text_direction
from modern.llm.prompt import build_system_prompt
from modern.notifications.broadcaster import (
    CONVERSATION_CREATED,
    MESSAGE_CREATED,
    EventBroadcaster,
)
from modern.store.entities import EntityStore
from modern.store.models import ROLE_ASSISTANT, ROLE_USER

if TYPE_CHECKING:
    from modern.llm.client import Completion
    from modern.llm.enrichment import CalendarSource, EmailSource
    from modern.store.models import Message

logger = logging.getLogger(__name__)

RECEIVED = "received"
PERSISTED_USER = "persisted_user"
CONTEXT_BUILT = "context_built"
COMPLETED = "completed"
FAILED = "failed"
PERSISTED_ASSISTANT = "persisted_assistant"
DONE = "done"

TITLE_MAX_LENGTH = 50


class ConversationNotFoundError(LookupError):
    """The requested conversation does not exist."""


def derive_title(text: str) -> str:
    """First 50 characters of *text*, with ``...`` appended if cut."""
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text


def message_view(message: Message) -> dict[str, Any]:
    """API representation of a message, with its display direction (``rtl``/``ltr``)."""
    return {**message.to_dict(), "direction": text_direction(message.content)}


@dataclass
class TurnResult:
    """Everything a caller needs after one turn."""

    user_message: Message
    assistant_message: Message
    conversation_id: str
    language: str
    system_prompt: str
    snapshot: EnrichmentSnapshot
    failure: str | None = None
    states: list[str] = field(default_factory=list)

    @property
    def speech_locale(self) -> str:
        return speech_locale(self.language)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_message": message_view(self.user_message),
            "assistant_message": message_view(self.assistant_message),
            "conversation_id": self.conversation_id,
            "language": self.language,
            "speech_locale": self.speech_locale,
        }


class ConversationOrchestrator:
    """Runs chat turns against the store, the connectors and Claude.

    Holds no per-conversation state, so one instance can serve concurrent
    requests.  Two turns on the same conversation are not serialised and
    may each read history before the other's writes land.
    """

    def __init__(
        self,
        store: EntityStore | None = None,
        *,
        email: EmailSource | None = None,
        calendar: CalendarSource | None = None,
        broadcaster: EventBroadcaster | None = None,
        complete: Completion | None = None,
    ) -> None:
        self._store = store
        self._sources = ContextSources(email=email, calendar=calendar)
        self._broadcaster = broadcaster
        self._complete = complete

    @property
    def store(self) -> EntityStore:
        return self._store or EntityStore.get()

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self._broadcaster or EventBroadcaster.get()

    async def _notify(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self.broadcaster.publish(event_type, payload)
        except Exception:
            logger.exception("Failed to publish %s", event_type)

    async def handle_turn(
        self,
        conversation_id: str | None,
        text: str,
        *,
        system_override: str | None = None,
    ) -> TurnResult:
        """Persist *text*, generate a reply, persist the reply.

        Args:
            conversation_id: Existing conversation, or None to start one
                titled after *text*.
            text: The user's message. Must not be blank.
            system_override: Replaces the composed system prompt. No business
                context is fetched when it is given.

        Raises:
            ValueError: If *text* is blank.
            ConversationNotFoundError: If *conversation_id* is unknown.
        """
        if not text or not text.strip():
            msg = "Message content must not be empty"
            raise ValueError(msg)

        store = self.store
        if conversation_id is not None and await store.get_conversation(conversation_id) is None:
            msg = f"Conversation {conversation_id} not found"
            raise ConversationNotFoundError(msg)

        states = [RECEIVED]

        if conversation_id is None:
            conversation = await store.create_conversation(derive_title(text))
            conversation_id = conversation.id
            await self._notify(CONVERSATION_CREATED, conversation.to_dict())

        user_message = await store.create_message(conversation_id, ROLE_USER, text)
        states.append(PERSISTED_USER)
        await self._notify(MESSAGE_CREATED, message_view(user_message))

        history = await store.get_messages(conversation_id)
        language = detect_language(text)
        if system_override is None:
            snapshot = await gather_business_context(text, self._sources)
        else:
            snapshot = EnrichmentSnapshot()
        assistant_settings = await store.get_settings()
        system_prompt = build_system_prompt(
            assistant_settings,
            language,
            business_context=snapshot.render(),
            override=system_override,
        )
        states.append(CONTEXT_BUILT)

        reply = await generate_reply(
            [m.to_api() for m in history], system_prompt, complete=self._complete
        )
        states.append(COMPLETED if reply.ok else FAILED)

        assistant_message = await store.create_message(
            conversation_id, ROLE_ASSISTANT, reply.text
        )
        states.append(PERSISTED_ASSISTANT)
        await self._notify(MESSAGE_CREATED, message_view(assistant_message))

        states.append(DONE)
        logger.info(
            "Turn done: conversation=%s lang=%s history=%d context=%s failure=%s",
            conversation_id,
            language,
            len(history),
            "yes" if not snapshot.is_empty else "no",
            reply.failure or "none",
        )
        return TurnResult(
            user_message=user_message,
            assistant_message=assistant_message,
            conversation_id=conversation_id,
            language=language,
            system_prompt=system_prompt,
            snapshot=snapshot,
            failure=reply.failure,
            states=states,
        )
