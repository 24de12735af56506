"""SQLite persistence for conversations and their messages."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List

from surviveai.models.conversation import ChatMessage, Conversation, PerformanceMetrics

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class ConversationStore:
    """Manages the conversations and messages tables."""

    def __init__(self, db_path: str):
        """Initialize conversation store.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._memory_conn: sqlite3.Connection | None = None
        if db_path == IN_MEMORY:
            # A single shared connection, otherwise each connect() sees an empty database
            self._memory_conn = sqlite3.connect(IN_MEMORY)
            self._memory_conn.row_factory = sqlite3.Row
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context management."""
        conn = self._memory_conn or sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn is not self._memory_conn:
                conn.close()

    def _init_schema(self):
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    message_count INTEGER DEFAULT 0,
                    preview TEXT DEFAULT ''
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL
                        REFERENCES conversations(id) ON DELETE CASCADE,
                    role TEXT CHECK(role IN ('user', 'assistant', 'system')),
                    content TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    images TEXT,
                    source TEXT CHECK(source IN ('model', 'knowledge-grounded')),
                    knowledge_entry_id TEXT,
                    metrics TEXT
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_msg_conversation "
                "ON messages(conversation_id, timestamp)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_conv_updated ON conversations(updated_at)"
            )

            logger.debug(f"Database schema initialized at {self.db_path}")

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None

    # Conversation operations
    def save_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation summary."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO conversations
                    (id, title, created_at, updated_at, message_count, preview)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    updated_at = excluded.updated_at,
                    message_count = excluded.message_count,
                    preview = excluded.preview
                """,
                (
                    conversation.id,
                    conversation.title,
                    conversation.created_at,
                    conversation.updated_at,
                    conversation.message_count,
                    conversation.preview,
                ),
            )

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
            if row:
                return Conversation(**dict(row))
            return None

    def list_conversations(self) -> List[Conversation]:
        """All conversations, most recently updated first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM conversations ORDER BY updated_at DESC, created_at DESC"
            ).fetchall()
            return [Conversation(**dict(row)) for row in rows]

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and, by cascade, its messages.

        Returns:
            True if a conversation was deleted
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            return cursor.rowcount > 0

    def delete_messages(self, conversation_id: str) -> int:
        """Delete a conversation's messages, keeping the conversation.

        Returns:
            Number of messages deleted
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
            )
            return cursor.rowcount

    # Message operations
    def add_message(self, message: ChatMessage) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO messages
                    (id, conversation_id, role, content, timestamp, images,
                     source, knowledge_entry_id, metrics)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.conversation_id,
                    message.role,
                    message.content,
                    message.timestamp,
                    json.dumps(list(message.images)) if message.images else None,
                    message.source,
                    message.knowledge_entry_id,
                    json.dumps(message.metrics.to_dict()) if message.metrics else None,
                ),
            )

    def get_messages(self, conversation_id: str) -> List[ChatMessage]:
        """Messages of a conversation in chronological order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY timestamp, rowid",
                (conversation_id,),
            ).fetchall()

        messages = []
        for row in rows:
            metrics = json.loads(row["metrics"]) if row["metrics"] else None
            messages.append(
                ChatMessage(
                    id=row["id"],
                    conversation_id=row["conversation_id"],
                    role=row["role"],
                    content=row["content"],
                    timestamp=row["timestamp"],
                    images=tuple(json.loads(row["images"])) if row["images"] else (),
                    source=row["source"],
                    knowledge_entry_id=row["knowledge_entry_id"],
                    metrics=PerformanceMetrics.from_dict(metrics) if metrics else None,
                )
            )
        return messages
