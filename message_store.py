"""
Sentinel - Message History Store
SQLite-backed history used for near-duplicate lookups and the moderation log.
"""

import logging
import os
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from models import StoredMessage

logger = logging.getLogger(__name__)

MODERATION_ACTIONS = ('approved', 'spam', 'spam_kick')


class StoreNotInitializedError(RuntimeError):
    """A query was issued before MessageStore.initialize()."""


def _to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class MessageStore:
    """
    Recent message history per (user, group).

    initialize() must run once before any other call. Each operation opens
    its own connection, so the store can be used from worker threads.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_initialized(self):
        if not self._initialized:
            raise StoreNotInitializedError(
                "Message store not initialized. Call initialize() first."
            )

    def initialize(self):
        """Create tables and indexes if they do not exist."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    group_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS moderation_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    message_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    moderator_id TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_user_time "
                "ON messages(user_id, group_id, created_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_group "
                "ON messages(group_id, created_at)"
            )

        self._initialized = True
        logger.info(f"💾 Message store initialized ({self.db_path})")

    def save_message(self, record: StoredMessage):
        """Insert or replace a message record."""
        self._ensure_initialized()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO messages (id, user_id, channel_id, group_id, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.channel_id,
                    record.group_id,
                    record.content,
                    _to_millis(record.created_at),
                ),
            )

    def get_recent_messages(self, user_id: str, group_id: str, since: datetime) -> List[StoredMessage]:
        """All messages by user in group newer than `since`, most recent first."""
        self._ensure_initialized()
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, channel_id, group_id, content, created_at
                FROM messages
                WHERE user_id = ? AND group_id = ? AND created_at > ?
                ORDER BY created_at DESC
                """,
                (user_id, group_id, _to_millis(since)),
            ).fetchall()
        return [
            StoredMessage(
                id=row['id'],
                user_id=row['user_id'],
                channel_id=row['channel_id'],
                group_id=row['group_id'],
                content=row['content'],
                created_at=_from_millis(row['created_at']),
            )
            for row in rows
        ]

    def delete_message(self, message_id: str) -> bool:
        self._ensure_initialized()
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            return cur.rowcount > 0

    def clean_old_messages(self, days_to_keep: int) -> int:
        """Delete messages older than the retention window; returns rows removed."""
        self._ensure_initialized()
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM messages WHERE created_at < ?",
                (_to_millis(cutoff),),
            )
            removed = cur.rowcount
        if removed > 0:
            logger.info(f"🧹 Cleaned up {removed} old messages")
        return removed

    def log_moderation_action(self, message_id: str, user_id: str, action: str, moderator_id: str):
        self._ensure_initialized()
        if action not in MODERATION_ACTIONS:
            raise ValueError(f"Unknown moderation action: {action}")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO moderation_log (message_id, user_id, action, moderator_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (message_id, user_id, action, moderator_id, _to_millis(datetime.now(timezone.utc))),
            )

    def get_moderation_log(self, message_id: str) -> List[Dict]:
        self._ensure_initialized()
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT message_id, user_id, action, moderator_id, created_at
                FROM moderation_log
                WHERE message_id = ?
                ORDER BY id
                """,
                (message_id,),
            ).fetchall()
        return [
            {
                'message_id': row['message_id'],
                'user_id': row['user_id'],
                'action': row['action'],
                'moderator_id': row['moderator_id'],
                'created_at': _from_millis(row['created_at']),
            }
            for row in rows
        ]
