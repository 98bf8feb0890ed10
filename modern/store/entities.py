"""EntityStore — libsql CRUD for every persisted entity."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from modern.db import connect
from modern.store.models import (
    DEFAULT_ASSISTANT_NAME,
    DEFAULT_SYSTEM_INSTRUCTIONS,
    SETTINGS_ROW_ID,
    TASK_PENDING,
    TASK_STATUSES,
    AssistantSettings,
    Conversation,
    KnowledgeEntry,
    Message,
    Task,
    make_id,
    now_iso,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id         TEXT PRIMARY KEY,
        title      TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id              TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL REFERENCES conversations(id),
        role            TEXT NOT NULL,
        content         TEXT NOT NULL,
        created_at      TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_conversation
        ON messages (conversation_id, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id              TEXT PRIMARY KEY,
        conversation_id TEXT,
        title           TEXT NOT NULL,
        description     TEXT NOT NULL DEFAULT '',
        status          TEXT NOT NULL DEFAULT 'pending',
        created_at      TEXT NOT NULL,
        updated_at      TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS knowledge_entries (
        id          TEXT PRIMARY KEY,
        title       TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        category    TEXT NOT NULL DEFAULT '',
        content     TEXT NOT NULL DEFAULT '',
        tags        TEXT NOT NULL DEFAULT '[]',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS assistant_settings (
        id                  TEXT PRIMARY KEY,
        assistant_name      TEXT NOT NULL,
        system_instructions TEXT NOT NULL DEFAULT '',
        updated_at          TEXT NOT NULL
    )
    """,
)

_TASK_FIELDS = frozenset({"title", "description", "status", "conversation_id"})
_SETTINGS_FIELDS = frozenset({"assistant_name", "system_instructions"})


class EntityStore:
    """Persists conversations, messages, tasks, knowledge and settings.

    Singleton accessed via ``EntityStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).

    Every method opens its own connection; there are no multi-statement
    transactions.  ``create_message`` in particular is two independent
    writes (insert the message, bump the conversation's ``updated_at``).
    """

    _instance: EntityStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path

    @classmethod
    def get(cls) -> EntityStore:
        """Return the shared EntityStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    def _connect(self):  # noqa: ANN202
        return connect(self._db_path, schema=_SCHEMA)

    # -- Conversations ---------------------------------------------------------

    async def list_conversations(self) -> list[Conversation]:
        """Return all conversations, most recently active first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, title, created_at, updated_at FROM conversations "
                "ORDER BY updated_at DESC"
            )
            rows = await cursor.fetchall()
        return [Conversation.from_row(row) for row in rows]

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, title, created_at, updated_at FROM conversations WHERE id = ?",
                (conversation_id,),
            )
            row = await cursor.fetchone()
        return Conversation.from_row(row) if row else None

    async def create_conversation(self, title: str) -> Conversation:
        conversation = Conversation(id=make_id(), title=title)
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO conversations (id, title, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                conversation.to_row(),
            )
            await db.commit()
        logger.info("Created conversation %s: %s", conversation.id, title)
        return conversation

    async def update_conversation_title(
        self, conversation_id: str, title: str
    ) -> Conversation | None:
        """Rename a conversation. Returns None if it does not exist."""
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                (title, now_iso(), conversation_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        return await self.get_conversation(conversation_id)

    # -- Messages --------------------------------------------------------------

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Return a conversation's messages, oldest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, conversation_id, role, content, created_at FROM messages "
                "WHERE conversation_id = ? ORDER BY created_at, rowid",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        return [Message.from_row(row) for row in rows]

    async def get_current_messages(self) -> list[Message]:
        """Return the messages of the most recently active conversation."""
        conversations = await self.list_conversations()
        if not conversations:
            return []
        return await self.get_messages(conversations[0].id)

    async def create_message(self, conversation_id: str, role: str, content: str) -> Message:
        """Append a message and bump the owning conversation's ``updated_at``."""
        message = Message(
            id=make_id(), conversation_id=conversation_id, role=role, content=content
        )
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO messages (id, conversation_id, role, content, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                message.to_row(),
            )
            await db.commit()
            await db.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (message.created_at, conversation_id),
            )
            await db.commit()
        logger.debug("Stored %s message %s in %s", role, message.id, conversation_id)
        return message

    # -- Tasks -----------------------------------------------------------------

    async def list_tasks(self) -> list[Task]:
        """Return all tasks, newest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, conversation_id, title, description, status, created_at, "
                "updated_at FROM tasks ORDER BY created_at DESC"
            )
            rows = await cursor.fetchall()
        return [Task.from_row(row) for row in rows]

    async def get_task(self, task_id: str) -> Task | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, conversation_id, title, description, status, created_at, "
                "updated_at FROM tasks WHERE id = ?",
                (task_id,),
            )
            row = await cursor.fetchone()
        return Task.from_row(row) if row else None

    async def create_task(
        self,
        title: str,
        description: str = "",
        status: str = TASK_PENDING,
        conversation_id: str | None = None,
    ) -> Task:
        task = Task(
            id=make_id(),
            title=title,
            description=description,
            status=status,
            conversation_id=conversation_id,
        )
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO tasks (id, conversation_id, title, description, status, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
            await db.commit()
        logger.info("Created task %s: %s", task.id, title)
        return task

    async def update_task(self, task_id: str, **changes: Any) -> Task | None:
        """Patch a task's fields. Returns the updated task, or None if not found.

        Raises:
            ValueError: On an unknown field or an invalid status.
        """
        unknown = set(changes) - _TASK_FIELDS
        if unknown:
            msg = f"Cannot update task field(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if "status" in changes and changes["status"] not in TASK_STATUSES:
            msg = f"Invalid task status: {changes['status']!r}"
            raise ValueError(msg)

        columns = sorted(changes)
        assignments = ", ".join(f"{col} = ?" for col in [*columns, "updated_at"])
        params = (*(changes[col] for col in columns), now_iso(), task_id)
        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",  # noqa: S608
                params,
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        return await self.get_task(task_id)

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task. Returns True if a row was removed."""
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted task %s", task_id)
        return deleted

    # -- Knowledge base --------------------------------------------------------

    async def list_knowledge(self) -> list[KnowledgeEntry]:
        """Return all knowledge entries, most recently updated first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, title, description, category, content, tags, created_at, "
                "updated_at FROM knowledge_entries ORDER BY updated_at DESC"
            )
            rows = await cursor.fetchall()
        return [KnowledgeEntry.from_row(row) for row in rows]

    async def get_knowledge(self, entry_id: str) -> KnowledgeEntry | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, title, description, category, content, tags, created_at, "
                "updated_at FROM knowledge_entries WHERE id = ?",
                (entry_id,),
            )
            row = await cursor.fetchone()
        return KnowledgeEntry.from_row(row) if row else None

    async def create_knowledge(
        self,
        title: str,
        description: str = "",
        category: str = "",
        content: str = "",
        tags: list[str] | None = None,
    ) -> KnowledgeEntry:
        entry = KnowledgeEntry(
            id=make_id(),
            title=title,
            description=description,
            category=category,
            content=content,
            tags=tags or [],
        )
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO knowledge_entries (id, title, description, category, content, "
                "tags, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                entry.to_row(),
            )
            await db.commit()
        logger.info("Created knowledge entry %s: %s", entry.id, title)
        return entry

    async def delete_knowledge(self, entry_id: str) -> bool:
        """Delete a knowledge entry. Returns True if a row was removed."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM knowledge_entries WHERE id = ?", (entry_id,)
            )
            await db.commit()
            return cursor.rowcount > 0

    # -- Settings --------------------------------------------------------------

    async def get_settings(self) -> AssistantSettings:
        """Return the settings row, creating it with defaults on first read."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, assistant_name, system_instructions, updated_at "
                "FROM assistant_settings WHERE id = ?",
                (SETTINGS_ROW_ID,),
            )
            row = await cursor.fetchone()
            if row:
                return AssistantSettings.from_row(row)

            defaults = AssistantSettings(
                assistant_name=DEFAULT_ASSISTANT_NAME,
                system_instructions=DEFAULT_SYSTEM_INSTRUCTIONS,
            )
            # A concurrent first read may have inserted already; keep that row.
            await db.execute(
                "INSERT OR IGNORE INTO assistant_settings "
                "(id, assistant_name, system_instructions, updated_at) VALUES (?, ?, ?, ?)",
                defaults.to_row(),
            )
            await db.commit()
            cursor = await db.execute(
                "SELECT id, assistant_name, system_instructions, updated_at "
                "FROM assistant_settings WHERE id = ?",
                (SETTINGS_ROW_ID,),
            )
            row = await cursor.fetchone()
        logger.info("Initialised default assistant settings")
        return AssistantSettings.from_row(row)

    async def update_settings(self, **changes: Any) -> AssistantSettings:
        """Get-or-create the settings row, then patch the given fields."""
        unknown = set(changes) - _SETTINGS_FIELDS
        if unknown:
            msg = f"Cannot update setting(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        current = await self.get_settings()
        if not changes:
            return current

        columns = sorted(changes)
        assignments = ", ".join(f"{col} = ?" for col in [*columns, "updated_at"])
        params = (*(changes[col] for col in columns), now_iso(), current.id)
        async with self._connect() as db:
            await db.execute(
                f"UPDATE assistant_settings SET {assignments} WHERE id = ?",  # noqa: S608
                params,
            )
            await db.commit()
        logger.info("Updated assistant settings: %s", ", ".join(columns))
        return await self.get_settings()
