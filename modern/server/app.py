"""aiohttp application: REST API for the UI plus the chat-turn endpoint.

Every mutating route publishes an entity event through the
:class:`~modern.notifications.broadcaster.EventBroadcaster` so connected
WebSocket clients can refresh.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import BaseModel, ValidationError

from modern.conversation.orchestrator import (
    ConversationNotFoundError,
    ConversationOrchestrator,
    message_view,
)
from modern.integrations.calendar import CalendarClient
from modern.integrations.gmail import GmailClient
from modern.integrations.google_auth import NotConnectedError
from modern.notifications.broadcaster import (
    CONVERSATION_CREATED,
    CONVERSATION_UPDATED,
    KNOWLEDGE_CREATED,
    KNOWLEDGE_DELETED,
    SETTINGS_UPDATED,
    TASK_CREATED,
    TASK_DELETED,
    TASK_UPDATED,
    EventBroadcaster,
)
from modern.server.schemas import (
    ChatTurnRequest,
    ConversationCreate,
    ConversationUpdate,
    EmailSend,
    EventCreate,
    EventUpdate,
    KnowledgeCreate,
    SettingsUpdate,
    TaskCreate,
    TaskUpdate,
)
from modern.server.websocket import handle_websocket
from modern.store.entities import EntityStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

STORE = web.AppKey("store", EntityStore)
ORCHESTRATOR = web.AppKey("orchestrator", ConversationOrchestrator)
BROADCASTER = web.AppKey("broadcaster", EventBroadcaster)
GMAIL = web.AppKey("gmail", GmailClient)
CALENDAR = web.AppKey("calendar", CalendarClient)


def _error(message: str, status: int, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


@web.middleware
async def _error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Translate domain exceptions into JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ValidationError as exc:
        return _error(
            "invalid request",
            400,
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        )
    except ConversationNotFoundError as exc:
        return _error(str(exc), 404)
    except NotConnectedError as exc:
        logger.info("Connector unavailable for %s: %s", request.path, exc)
        return _error(str(exc), 503, available=False)
    except ValueError as exc:
        return _error(str(exc), 400)
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(str(exc), 500)


async def _parse(request: web.Request, model: type[BaseModel]) -> Any:
    """Validate the JSON body against *model*."""
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "invalid JSON"}', content_type="application/json"
        ) from None
    return model.model_validate(data)


async def _publish(request: web.Request, event_type: str, payload: dict[str, Any]) -> None:
    try:
        await request.app[BROADCASTER].publish(event_type, payload)
    except Exception:
        logger.exception("Failed to publish %s", event_type)


# -- Health -----------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


# -- Conversations ------------------------------------------------------------


async def _list_conversations(request: web.Request) -> web.Response:
    conversations = await request.app[STORE].list_conversations()
    return web.json_response([c.to_dict() for c in conversations])


async def _get_conversation(request: web.Request) -> web.Response:
    conversation = await request.app[STORE].get_conversation(request.match_info["id"])
    if conversation is None:
        return _error("Conversation not found", 404)
    return web.json_response(conversation.to_dict())


async def _create_conversation(request: web.Request) -> web.Response:
    body = await _parse(request, ConversationCreate)
    conversation = await request.app[STORE].create_conversation(body.title)
    await _publish(request, CONVERSATION_CREATED, conversation.to_dict())
    return web.json_response(conversation.to_dict())


async def _update_conversation(request: web.Request) -> web.Response:
    body = await _parse(request, ConversationUpdate)
    conversation = await request.app[STORE].update_conversation_title(
        request.match_info["id"], body.title
    )
    if conversation is None:
        return _error("Conversation not found", 404)
    await _publish(request, CONVERSATION_UPDATED, conversation.to_dict())
    return web.json_response(conversation.to_dict())


# -- Messages -----------------------------------------------------------------


async def _current_messages(request: web.Request) -> web.Response:
    messages = await request.app[STORE].get_current_messages()
    return web.json_response([message_view(m) for m in messages])


async def _list_messages(request: web.Request) -> web.Response:
    messages = await request.app[STORE].get_messages(request.match_info["conversation_id"])
    return web.json_response([message_view(m) for m in messages])


async def _chat_turn(request: web.Request) -> web.Response:
    """POST /api/messages[/{conversation_id}] — run one chat turn."""
    body = await _parse(request, ChatTurnRequest)
    result = await request.app[ORCHESTRATOR].handle_turn(
        request.match_info.get("conversation_id"),
        body.content,
        system_override=body.system_prompt,
    )
    return web.json_response(result.to_dict())


# -- Tasks --------------------------------------------------------------------


async def _list_tasks(request: web.Request) -> web.Response:
    tasks = await request.app[STORE].list_tasks()
    return web.json_response([t.to_dict() for t in tasks])


async def _get_task(request: web.Request) -> web.Response:
    task = await request.app[STORE].get_task(request.match_info["id"])
    if task is None:
        return _error("Task not found", 404)
    return web.json_response(task.to_dict())


async def _create_task(request: web.Request) -> web.Response:
    body = await _parse(request, TaskCreate)
    task = await request.app[STORE].create_task(**body.model_dump())
    await _publish(request, TASK_CREATED, task.to_dict())
    return web.json_response(task.to_dict())


async def _update_task(request: web.Request) -> web.Response:
    body = await _parse(request, TaskUpdate)
    task = await request.app[STORE].update_task(
        request.match_info["id"], **body.model_dump(exclude_unset=True)
    )
    if task is None:
        return _error("Task not found", 404)
    await _publish(request, TASK_UPDATED, task.to_dict())
    return web.json_response(task.to_dict())


async def _delete_task(request: web.Request) -> web.Response:
    task_id = request.match_info["id"]
    await request.app[STORE].delete_task(task_id)
    await _publish(request, TASK_DELETED, {"id": task_id})
    return web.json_response({"success": True})


# -- Knowledge base -----------------------------------------------------------


async def _list_knowledge(request: web.Request) -> web.Response:
    entries = await request.app[STORE].list_knowledge()
    return web.json_response([e.to_dict() for e in entries])


async def _get_knowledge(request: web.Request) -> web.Response:
    entry = await request.app[STORE].get_knowledge(request.match_info["id"])
    if entry is None:
        return _error("Knowledge entry not found", 404)
    return web.json_response(entry.to_dict())


async def _create_knowledge(request: web.Request) -> web.Response:
    body = await _parse(request, KnowledgeCreate)
    entry = await request.app[STORE].create_knowledge(**body.model_dump())
    await _publish(request, KNOWLEDGE_CREATED, entry.to_dict())
    return web.json_response(entry.to_dict())


async def _delete_knowledge(request: web.Request) -> web.Response:
    entry_id = request.match_info["id"]
    await request.app[STORE].delete_knowledge(entry_id)
    await _publish(request, KNOWLEDGE_DELETED, {"id": entry_id})
    return web.json_response({"success": True})


# -- Settings -----------------------------------------------------------------


async def _get_settings(request: web.Request) -> web.Response:
    assistant = await request.app[STORE].get_settings()
    return web.json_response(assistant.to_dict())


async def _update_settings(request: web.Request) -> web.Response:
    body = await _parse(request, SettingsUpdate)
    assistant = await request.app[STORE].update_settings(
        **body.model_dump(exclude_none=True)
    )
    await _publish(request, SETTINGS_UPDATED, assistant.to_dict())
    return web.json_response(assistant.to_dict())


# -- Connectors ---------------------------------------------------------------

MAX_RESULTS_LIMIT = 100


def _query_int(request: web.Request, name: str, default: int) -> int:
    """Parse an integer query parameter. Raises ValueError when malformed."""
    raw = request.query.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer"
        raise ValueError(msg) from None


def _max_results(request: web.Request, default: int = 20) -> int:
    """``maxResults`` clamped to 1..MAX_RESULTS_LIMIT."""
    return max(1, min(_query_int(request, "maxResults", default), MAX_RESULTS_LIMIT))


async def _gmail_messages(request: web.Request) -> web.Response:
    messages = await request.app[GMAIL].list_recent(
        _max_results(request), request.query.get("q", "")
    )
    return web.json_response(messages)


async def _gmail_message(request: web.Request) -> web.Response:
    message = await request.app[GMAIL].get_message(request.match_info["id"])
    if message is None:
        return _error("Message not found", 404)
    return web.json_response(message)


async def _gmail_send(request: web.Request) -> web.Response:
    body = await _parse(request, EmailSend)
    result = await request.app[GMAIL].send_message(**body.model_dump())
    return web.json_response(result)


async def _gmail_unread_count(request: web.Request) -> web.Response:
    try:
        count = await request.app[GMAIL].unread_count()
    except NotConnectedError:
        return _error("Gmail not connected", 503, available=False, count=0)
    return web.json_response({"count": count})


async def _calendar_events(request: web.Request) -> web.Response:
    events = await request.app[CALENDAR].list_events(
        _max_results(request), request.query.get("timeMin") or None
    )
    return web.json_response(events)


async def _calendar_upcoming(request: web.Request) -> web.Response:
    events = await request.app[CALENDAR].list_upcoming(_query_int(request, "days", 7))
    return web.json_response(events)


async def _calendar_event(request: web.Request) -> web.Response:
    event = await request.app[CALENDAR].get_event(request.match_info["id"])
    if event is None:
        return _error("Event not found", 404)
    return web.json_response(event)


async def _create_calendar_event(request: web.Request) -> web.Response:
    body = await _parse(request, EventCreate)
    event = await request.app[CALENDAR].create_event(**body.model_dump())
    return web.json_response(event)


async def _update_calendar_event(request: web.Request) -> web.Response:
    body = await _parse(request, EventUpdate)
    event = await request.app[CALENDAR].update_event(
        request.match_info["id"], **body.model_dump(exclude_unset=True)
    )
    if event is None:
        return _error("Event not found", 404)
    return web.json_response(event)


async def _delete_calendar_event(request: web.Request) -> web.Response:
    if not await request.app[CALENDAR].delete_event(request.match_info["id"]):
        return _error("Event not found", 404)
    return web.json_response({"success": True})


def create_app(
    *,
    store: EntityStore | None = None,
    orchestrator: ConversationOrchestrator | None = None,
    broadcaster: EventBroadcaster | None = None,
    gmail: GmailClient | None = None,
    calendar: CalendarClient | None = None,
) -> web.Application:
    """Build the aiohttp Application with routes and shared services."""
    store = store or EntityStore.get()
    broadcaster = broadcaster or EventBroadcaster.get()
    gmail = gmail or GmailClient()
    calendar = calendar or CalendarClient()
    orchestrator = orchestrator or ConversationOrchestrator(
        store, email=gmail, calendar=calendar, broadcaster=broadcaster
    )

    app = web.Application(middlewares=[_error_middleware])
    app[STORE] = store
    app[ORCHESTRATOR] = orchestrator
    app[BROADCASTER] = broadcaster
    app[GMAIL] = gmail
    app[CALENDAR] = calendar

    app.router.add_get("/health", _health)
    app.router.add_get("/ws", handle_websocket)

    app.router.add_get("/api/conversations", _list_conversations)
    app.router.add_post("/api/conversations", _create_conversation)
    app.router.add_get("/api/conversations/{id}", _get_conversation)
    app.router.add_patch("/api/conversations/{id}", _update_conversation)

    # "current" must be registered before the dynamic route.
    app.router.add_get("/api/messages/current", _current_messages)
    app.router.add_get("/api/messages/{conversation_id}", _list_messages)
    app.router.add_post("/api/messages", _chat_turn)
    app.router.add_post("/api/messages/{conversation_id}", _chat_turn)

    app.router.add_get("/api/tasks", _list_tasks)
    app.router.add_post("/api/tasks", _create_task)
    app.router.add_get("/api/tasks/{id}", _get_task)
    app.router.add_patch("/api/tasks/{id}", _update_task)
    app.router.add_delete("/api/tasks/{id}", _delete_task)

    app.router.add_get("/api/knowledge", _list_knowledge)
    app.router.add_post("/api/knowledge", _create_knowledge)
    app.router.add_get("/api/knowledge/{id}", _get_knowledge)
    app.router.add_delete("/api/knowledge/{id}", _delete_knowledge)

    app.router.add_get("/api/settings", _get_settings)
    app.router.add_patch("/api/settings", _update_settings)

    app.router.add_get("/api/gmail/messages", _gmail_messages)
    app.router.add_get("/api/gmail/messages/{id}", _gmail_message)
    app.router.add_post("/api/gmail/send", _gmail_send)
    app.router.add_get("/api/gmail/unread-count", _gmail_unread_count)

    app.router.add_get("/api/calendar/events", _calendar_events)
    app.router.add_post("/api/calendar/events", _create_calendar_event)
    # "upcoming" must be registered before the dynamic route.
    app.router.add_get("/api/calendar/events/upcoming", _calendar_upcoming)
    app.router.add_get("/api/calendar/events/{id}", _calendar_event)
    app.router.add_patch("/api/calendar/events/{id}", _update_calendar_event)
    app.router.add_delete("/api/calendar/events/{id}", _delete_calendar_event)

    return app
