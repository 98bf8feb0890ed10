"""Persisted entities: conversations, messages, tasks, knowledge, settings."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
MESSAGE_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})

TASK_PENDING = "pending"
TASK_IN_PROGRESS = "in_progress"
TASK_COMPLETED = "completed"
TASK_STATUSES = frozenset({TASK_PENDING, TASK_IN_PROGRESS, TASK_COMPLETED})

DEFAULT_ASSISTANT_NAME = "Modern"
DEFAULT_SYSTEM_INSTRUCTIONS = (
    "أنت مساعد ذكي متخصص في مساعدة الشركات. تتعلم من المحادثات السابقة وتتذكر كل شيء. "
    "ساعد المستخدم بطريقة احترافية ومنظمة.\n"
    "You are an intelligent assistant specialised in helping businesses. You learn from "
    "previous conversations and remember everything. Help the user in a professional, "
    "organised way."
)

# Only one assistant_settings row ever exists; it always carries this id.
SETTINGS_ROW_ID = "default"


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def make_id() -> str:
    """Generate a new entity ID."""
    return uuid.uuid4().hex


@dataclass
class Conversation:
    id: str
    title: str
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = now_iso()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        return (self.id, self.title, self.created_at, self.updated_at)

    @classmethod
    def from_row(cls, row: tuple) -> Conversation:
        return cls(id=row[0], title=row[1], created_at=row[2], updated_at=row[3])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    """One immutable chat message. ``role`` is ``"user"`` or ``"assistant"``."""

    id: str
    conversation_id: str
    role: str
    content: str
    created_at: str = ""

    def __post_init__(self) -> None:
        if self.role not in MESSAGE_ROLES:
            msg = f"Invalid message role: {self.role!r}"
            raise ValueError(msg)
        if not self.created_at:
            self.created_at = now_iso()

    def to_row(self) -> tuple:
        return (self.id, self.conversation_id, self.role, self.content, self.created_at)

    @classmethod
    def from_row(cls, row: tuple) -> Message:
        return cls(
            id=row[0],
            conversation_id=row[1],
            role=row[2],
            content=row[3],
            created_at=row[4],
        )

    def to_api(self) -> dict[str, str]:
        """Format for the completion call."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Task:
    """A to-do item, optionally linked back to the conversation it came from.

    Attributes:
        id: Unique identifier (UUID hex).
        title: Short summary.
        description: Optional longer text.
        status: ``"pending"``, ``"in_progress"`` or ``"completed"``.
        conversation_id: Back-reference only; deleting a task never touches it.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp, bumped on every update.
    """

    id: str
    title: str
    description: str = ""
    status: str = TASK_PENDING
    conversation_id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if self.status not in TASK_STATUSES:
            msg = f"Invalid task status: {self.status!r}"
            raise ValueError(msg)
        if not self.created_at:
            self.created_at = now_iso()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        return (
            self.id,
            self.conversation_id,
            self.title,
            self.description,
            self.status,
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        return cls(
            id=row[0],
            conversation_id=row[1],
            title=row[2],
            description=row[3] or "",
            status=row[4],
            created_at=row[5],
            updated_at=row[6],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class KnowledgeEntry:
    """A documented business process in the knowledge base."""

    id: str
    title: str
    description: str = ""
    category: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        # Tags behave as a set but keep their first-seen order.
        self.tags = list(dict.fromkeys(t.strip() for t in self.tags if t.strip()))
        if not self.created_at:
            self.created_at = now_iso()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        return (
            self.id,
            self.title,
            self.description,
            self.category,
            self.content,
            json.dumps(self.tags, ensure_ascii=False),
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> KnowledgeEntry:
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            category=row[3] or "",
            content=row[4] or "",
            tags=json.loads(row[5]) if row[5] else [],
            created_at=row[6],
            updated_at=row[7],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AssistantSettings:
    """The singleton row holding the assistant's name and base instructions."""

    id: str = SETTINGS_ROW_ID
    assistant_name: str = DEFAULT_ASSISTANT_NAME
    system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = now_iso()

    def to_row(self) -> tuple:
        return (self.id, self.assistant_name, self.system_instructions, self.updated_at)

    @classmethod
    def from_row(cls, row: tuple) -> AssistantSettings:
        return cls(
            id=row[0],
            assistant_name=row[1],
            system_instructions=row[2] or "",
            updated_at=row[3],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
