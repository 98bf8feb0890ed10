"""Async Claude client and the fallback replies used when it fails."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import anthropic

from modern.config import settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    Completion = Callable[..., Awaitable[str]]

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None

# Failure kinds for the completion call.
RATE_LIMITED = "rate_limited"
CONNECTIVITY = "connectivity"
OTHER = "other"

FALLBACK_REPLIES: dict[str, str] = {
    RATE_LIMITED: "I'm experiencing high demand right now. Please try again in a moment.",
    CONNECTIVITY: "I'm having trouble connecting to my AI service. Please try again shortly.",
    OTHER: (
        "I apologize, but I encountered an error while processing your request. "
        "Please try again."
    ),
}

EMPTY_REPLY = "I apologize, but I couldn't generate a response at this time."

# Anthropic returns 529 when the API is overloaded.
_OVERLOADED_STATUS = 529


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


async def complete_text(
    messages: list[dict[str, Any]],
    *,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int | None = None,
) -> str:
    """Single-shot Claude call. Returns the concatenated text blocks."""
    client = _get_client()
    kwargs: dict[str, Any] = {
        "model": model or settings.claude_model,
        "max_tokens": max_tokens or settings.max_completion_tokens,
        "messages": messages,
    }
    if system is not None:
        kwargs["system"] = system
    response = await client.messages.create(**kwargs)
    return "".join(block.text for block in response.content if block.type == "text")


def classify_completion_error(exc: BaseException) -> str:
    """Map a completion failure to ``rate_limited``, ``connectivity`` or ``other``."""
    if isinstance(exc, anthropic.RateLimitError):
        return RATE_LIMITED
    if isinstance(exc, anthropic.APIStatusError) and exc.status_code == _OVERLOADED_STATUS:
        return RATE_LIMITED
    if isinstance(exc, (anthropic.APIConnectionError, TimeoutError, ConnectionError)):
        return CONNECTIVITY

    text = str(exc).lower()
    if "429" in text or "rate limit" in text:
        return RATE_LIMITED
    if "timeout" in text or "econnrefused" in text:
        return CONNECTIVITY
    return OTHER


@dataclass
class Reply:
    """Outcome of one completion call.

    ``failure`` is None on success; otherwise it is the failure kind and
    ``text`` is the matching fallback reply.
    """

    text: str
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


async def generate_reply(
    history: list[dict[str, str]],
    system: str,
    *,
    complete: Completion | None = None,
) -> Reply:
    """Run the completion call, converting any failure into a fallback reply.

    Args:
        history: Full conversation as ``{"role", "content"}`` dicts, oldest first.
        system: Composed system prompt.
        complete: Completion function; defaults to :func:`complete_text`.
    """
    complete = complete or complete_text
    try:
        text = await complete(history, system=system)
    except Exception as exc:
        kind = classify_completion_error(exc)
        logger.error("Completion failed (%s): %s", kind, exc)
        return Reply(text=FALLBACK_REPLIES[kind], failure=kind)

    if not text or not text.strip():
        logger.warning("Completion returned an empty reply")
        return Reply(text=EMPTY_REPLY)
    return Reply(text=text)
