"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

SUMMARY_CHARS = 40


@dataclass(frozen=True)
class IncomingMessage:
    """Minimal message context used by the core processing pipeline."""

    channel_id: int
    message_id: int
    author_id: int
    author_is_bot: bool
    text: str
    date: datetime

    def summary(self) -> str:
        """Short one-line description used in log lines."""

        text = self.text.replace("\n", " ")
        if len(text) > SUMMARY_CHARS:
            text = text[:SUMMARY_CHARS] + "…"
        return f'chat:{self.channel_id} msg:{self.message_id} from:{self.author_id} "{text}"'


@dataclass(frozen=True)
class ReactionEvent:
    """A single emoji added to a message by a user."""

    channel_id: int
    message_id: int
    user_id: int
    emoji: str


@dataclass(frozen=True)
class ReplyRecord:
    """Persisted association between an origin message and the bot's replies."""

    origin_channel_id: int
    origin_message_id: int
    origin_author_id: int
    reply_message_ids: Tuple[int, ...]
    created_at: datetime

    def __post_init__(self) -> None:
        if not self.reply_message_ids:
            raise ValueError("ReplyRecord requires at least one reply message id")


@dataclass(frozen=True)
class ErrorRecord:
    """Persisted crash/fault entry surfaced on the next startup."""

    id: int
    error_text: str
    occurred_at: datetime
    notified: bool
