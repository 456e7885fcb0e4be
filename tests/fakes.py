"""In-memory port implementations shared by the tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from core.config import BotConfig
from core.errors import StorageError, TransportError
from core.models import ErrorRecord, IncomingMessage, ReplyRecord
from core.replies import PlainReply, Reply


class FakeStorage:
    def __init__(self) -> None:
        self.initialized = 0
        self.replies: Dict[Tuple[int, int], ReplyRecord] = {}
        self.errors: List[ErrorRecord] = []
        self.fail_add_reply = False
        self.fail_delete_reply = False
        self.fail_add_error = False
        self.fail_lookup = False

    def init_db(self) -> None:
        self.initialized += 1

    def add_reply(self, record: ReplyRecord) -> None:
        if self.fail_add_reply:
            raise StorageError("disk full")
        key = (record.origin_channel_id, record.origin_message_id)
        if key in self.replies:
            raise StorageError("duplicate reply record")
        self.replies[key] = record

    def lookup_reply(self, channel_id: int, message_id: int) -> Optional[ReplyRecord]:
        if self.fail_lookup:
            raise StorageError("database is locked")
        for (record_channel, origin_id), record in self.replies.items():
            if record_channel != channel_id:
                continue
            if origin_id == message_id or message_id in record.reply_message_ids:
                return record
        return None

    def delete_reply(self, channel_id: int, origin_message_id: int) -> bool:
        if self.fail_delete_reply:
            raise StorageError("database is locked")
        return self.replies.pop((channel_id, origin_message_id), None) is not None

    def add_error(self, error_text: str) -> ErrorRecord:
        if self.fail_add_error:
            raise StorageError("disk full")
        record = ErrorRecord(
            id=len(self.errors) + 1,
            error_text=error_text,
            occurred_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            notified=False,
        )
        self.errors.append(record)
        return record

    def unnotified_errors(self) -> List[ErrorRecord]:
        return [record for record in self.errors if not record.notified]

    def mark_notified(self, error_ids: Sequence[int]) -> None:
        ids = set(error_ids)
        self.errors = [
            ErrorRecord(r.id, r.error_text, r.occurred_at, True) if r.id in ids else r
            for r in self.errors
        ]


class FakeTransport:
    def __init__(self) -> None:
        self.sent: List[Tuple[int, Reply, Optional[int]]] = []
        self.reactions: List[Tuple[int, int, str]] = []
        self.deleted: List[Tuple[int, Tuple[int, ...]]] = []
        self.fail_send_at: Optional[int] = None
        self.fail_react = False
        self.fail_delete = False
        self._next_id = 100

    async def send(self, channel_id: int, reply: Reply, reply_to: Optional[int] = None) -> int:
        if self.fail_send_at is not None and len(self.sent) == self.fail_send_at:
            raise TransportError("FLOOD_WAIT")
        self.sent.append((channel_id, reply, reply_to))
        message_id = self._next_id
        self._next_id += 1
        return message_id

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        if self.fail_react:
            raise TransportError("REACTION_INVALID")
        self.reactions.append((channel_id, message_id, emoji))

    async def delete(self, channel_id: int, message_ids: Sequence[int]) -> None:
        # Yield once so concurrent deletions can interleave like real I/O.
        await asyncio.sleep(0)
        if self.fail_delete:
            raise TransportError("MESSAGE_DELETE_FORBIDDEN")
        self.deleted.append((channel_id, tuple(message_ids)))

    def texts(self) -> List[str]:
        return [reply.text for _, reply, _ in self.sent if isinstance(reply, PlainReply)]


def make_config(**overrides) -> BotConfig:
    values = dict(
        prefix="!",
        delete_emoji="👎",
        owner_id=None,
        embeds_active=False,
        timeout_chars=2000,
        timeout_message=PlainReply("Cut after {config.timeout_chars} characters.", formatted=True),
        help_message=PlainReply("Use {config.prefix}help", formatted=True),
    )
    values.update(overrides)
    return BotConfig(**values)


def make_message(text: str, *, message_id: int = 1, author_id: int = 42, channel_id: int = -100, bot: bool = False) -> IncomingMessage:
    return IncomingMessage(
        channel_id=channel_id,
        message_id=message_id,
        author_id=author_id,
        author_is_bot=bot,
        text=text,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
