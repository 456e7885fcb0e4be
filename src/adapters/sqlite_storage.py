"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import json
import sqlite3
from typing import Iterator, List, Optional, Sequence

from core.errors import StorageError
from core.models import ErrorRecord, ReplyRecord


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        # One connection and one transaction per operation keeps every call atomic.
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"SQLite error on {self._db_path}: {exc}") from exc

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - replies: one row per answered origin message
        - reply_messages: reply message id -> origin message, for reaction lookups
        - errors: append-only crash journal
        """

        with self._transaction() as conn:
            # Telegram message ids are only unique within a chat, so every key
            # includes the chat id.
            # Fields:
            # - origin_channel_id / origin_message_id: the message we answered
            # - origin_author_id: the only user allowed to delete our replies
            # - reply_message_ids: JSON list of our reply ids, in send order
            # - created_at: UTC timestamp of the record
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS replies (
                    origin_channel_id INTEGER NOT NULL,
                    origin_message_id INTEGER NOT NULL,
                    origin_author_id INTEGER NOT NULL,
                    reply_message_ids TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (origin_channel_id, origin_message_id)
                )
                """
            )
            # A delete reaction lands on one of our replies, not on the origin
            # message, so every reply id points back to its record.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reply_messages (
                    channel_id INTEGER NOT NULL,
                    reply_message_id INTEGER NOT NULL,
                    origin_message_id INTEGER NOT NULL,
                    PRIMARY KEY (channel_id, reply_message_id),
                    FOREIGN KEY (channel_id, origin_message_id)
                        REFERENCES replies (origin_channel_id, origin_message_id)
                        ON DELETE CASCADE
                )
                """
            )
            # errors is never pruned; notified flips once the owner was told.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS errors (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    error_text TEXT NOT NULL,
                    occurred_at TIMESTAMP NOT NULL,
                    notified INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    def add_reply(self, record: ReplyRecord) -> None:
        """Persist a reply record together with its reply id index."""

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO replies (
                    origin_channel_id,
                    origin_message_id,
                    origin_author_id,
                    reply_message_ids,
                    created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.origin_channel_id,
                    record.origin_message_id,
                    record.origin_author_id,
                    json.dumps(list(record.reply_message_ids)),
                    record.created_at.isoformat(),
                ),
            )
            conn.executemany(
                """
                INSERT INTO reply_messages (channel_id, reply_message_id, origin_message_id)
                VALUES (?, ?, ?)
                """,
                [
                    (record.origin_channel_id, reply_id, record.origin_message_id)
                    for reply_id in record.reply_message_ids
                ],
            )

    def lookup_reply(self, channel_id: int, message_id: int) -> Optional[ReplyRecord]:
        """Return the record whose origin or one of whose replies is ``message_id``."""

        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT r.* FROM replies r
                LEFT JOIN reply_messages m
                    ON m.channel_id = r.origin_channel_id
                    AND m.origin_message_id = r.origin_message_id
                WHERE r.origin_channel_id = ?
                    AND (r.origin_message_id = ? OR m.reply_message_id = ?)
                LIMIT 1
                """,
                (channel_id, message_id, message_id),
            ).fetchone()
        if row is None:
            return None
        return ReplyRecord(
            origin_channel_id=int(row["origin_channel_id"]),
            origin_message_id=int(row["origin_message_id"]),
            origin_author_id=int(row["origin_author_id"]),
            reply_message_ids=tuple(int(i) for i in json.loads(row["reply_message_ids"])),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def delete_reply(self, channel_id: int, origin_message_id: int) -> bool:
        """Delete a record; return whether one existed."""

        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM reply_messages WHERE channel_id = ? AND origin_message_id = ?",
                (channel_id, origin_message_id),
            )
            cur = conn.execute(
                "DELETE FROM replies WHERE origin_channel_id = ? AND origin_message_id = ?",
                (channel_id, origin_message_id),
            )
            return cur.rowcount > 0

    def add_error(self, error_text: str) -> ErrorRecord:
        """Append an error to the journal."""

        occurred_at = datetime.now(timezone.utc)
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO errors (error_text, occurred_at, notified) VALUES (?, ?, 0)",
                (error_text, occurred_at.isoformat()),
            )
            error_id = int(cur.lastrowid)
        return ErrorRecord(id=error_id, error_text=error_text, occurred_at=occurred_at, notified=False)

    def unnotified_errors(self) -> List[ErrorRecord]:
        """Return errors not yet reported to the owner, oldest first."""

        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, error_text, occurred_at, notified FROM errors WHERE notified = 0 ORDER BY id"
            ).fetchall()
        return [
            ErrorRecord(
                id=int(row["id"]),
                error_text=row["error_text"],
                occurred_at=datetime.fromisoformat(row["occurred_at"]),
                notified=bool(row["notified"]),
            )
            for row in rows
        ]

    def mark_notified(self, error_ids: Sequence[int]) -> None:
        """Flag errors as reported."""

        if not error_ids:
            return
        with self._transaction() as conn:
            conn.executemany(
                "UPDATE errors SET notified = 1 WHERE id = ?",
                [(error_id,) for error_id in error_ids],
            )
