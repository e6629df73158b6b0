"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

from contextlib import closing
import sqlite3

from core.models import Message

_COLUMNS = "id, tenant_id, timestamp, author, content, sequence_id, chat_title"


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        tenant_id=int(row["tenant_id"]),
        timestamp=int(row["timestamp"]),
        author=row["author"],
        content=row["content"],
        sequence_id=int(row["sequence_id"]),
        chat_title=row["chat_title"],
    )


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract.

    A new connection is opened and closed per operation, so calls from
    different worker threads never share one.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - messages: per-tenant message log, one row per (tenant_id, sequence_id)
        """

        with closing(self._connect()) as conn, conn:
            # Fields:
            # - id: "<tenant_id>:<sequence_id>" (PRIMARY KEY), makes re-ingestion
            #   and edits overwrite the same row
            # - tenant_id: Telegram chat id (Bot API form, -100... for supergroups)
            # - timestamp: receive time in epoch milliseconds
            # - author: display name of the sender
            # - content: message text, possibly rewritten with provenance
            # - sequence_id: Telegram message id within the chat
            # - chat_title: group title at receive time
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    tenant_id INTEGER NOT NULL,
                    timestamp INTEGER NOT NULL,
                    author TEXT NOT NULL,
                    content TEXT NOT NULL,
                    sequence_id INTEGER NOT NULL,
                    chat_title TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_messages_tenant_timestamp
                ON messages (tenant_id, timestamp)
                """
            )

    def insert_or_replace(self, message: Message) -> None:
        """Upsert one message; the latest write for an id wins."""

        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"INSERT OR REPLACE INTO messages ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.tenant_id,
                    message.timestamp,
                    message.author,
                    message.content,
                    message.sequence_id,
                    message.chat_title,
                ),
            )

    def query_by_tenant_since(self, tenant_id: int, since_ts: int) -> list[Message]:
        """Return messages at or after since_ts, oldest first."""

        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE tenant_id = ? AND timestamp >= ?
                ORDER BY timestamp ASC, sequence_id ASC
                """,
                (tenant_id, since_ts),
            ).fetchall()
        return [_row_to_message(row) for row in rows]

    def query_latest_n(self, tenant_id: int, n: int) -> list[Message]:
        """Return the n most recent messages, newest first."""

        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE tenant_id = ?
                ORDER BY timestamp DESC, sequence_id DESC
                LIMIT ?
                """,
                (tenant_id, n),
            ).fetchall()
        return [_row_to_message(row) for row in rows]

    def query_by_glob_pattern(self, tenant_id: int, pattern: str, limit: int) -> list[Message]:
        """Return messages whose content matches a GLOB pattern, newest first."""

        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE tenant_id = ? AND content GLOB ?
                ORDER BY timestamp DESC, sequence_id DESC
                LIMIT ?
                """,
                (tenant_id, pattern, limit),
            ).fetchall()
        return [_row_to_message(row) for row in rows]

    def delete_except_latest_n_per_tenant(self, n: int) -> int:
        """Keep the n most recent messages per tenant and return rows removed."""

        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                """
                DELETE FROM messages
                WHERE id IN (
                    SELECT id FROM (
                        SELECT id, ROW_NUMBER() OVER (
                            PARTITION BY tenant_id ORDER BY timestamp DESC, sequence_id DESC
                        ) AS row_num
                        FROM messages
                    )
                    WHERE row_num > ?
                )
                """,
                (n,),
            )
            return cur.rowcount

    def list_active_tenants(self, since_ts: int, min_count: int) -> list[int]:
        """Return tenants with more than min_count messages since since_ts, busiest first."""

        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                """
                SELECT tenant_id, COUNT(*) AS message_count
                FROM messages
                WHERE timestamp >= ?
                GROUP BY tenant_id
                HAVING COUNT(*) > ?
                ORDER BY message_count DESC
                """,
                (since_ts, min_count),
            ).fetchall()
        return [int(row["tenant_id"]) for row in rows]
