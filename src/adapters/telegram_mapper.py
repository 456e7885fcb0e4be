"""Telegram-to-core event mapping adapter.

This keeps Telethon-specific details out of the core pipeline. All chat ids
are Telethon "marked" ids, so messages and reactions from the same chat
agree on the key.
"""

from __future__ import annotations

from typing import Any, List, Optional

from telethon import utils
from telethon.tl import types
from telethon.tl.custom import Message

from core.models import IncomingMessage, ReactionEvent


def build_incoming(message: Message, sender: Any = None) -> IncomingMessage:
    """Build a core IncomingMessage from a Telethon Message."""

    return IncomingMessage(
        channel_id=message.chat_id,
        message_id=message.id,
        # Anonymous channel posts have no sender; 0 never matches a real user.
        author_id=message.sender_id or 0,
        author_is_bot=bool(getattr(sender, "bot", False)),
        text=message.raw_text or "",
        date=message.date,
    )


def _emoticon(reaction: Any) -> Optional[str]:
    # Custom emoji and paid reactions are ignored; only plain emoji can match.
    if isinstance(reaction, types.ReactionEmoji):
        return reaction.emoticon
    return None


def reactions_from_update(update: types.UpdateBotMessageReaction) -> List[ReactionEvent]:
    """Return one ReactionEvent per emoji the actor newly added."""

    old = {emoji for emoji in map(_emoticon, update.old_reactions or []) if emoji}
    added: List[str] = []
    for emoji in map(_emoticon, update.new_reactions or []):
        if emoji and emoji not in old and emoji not in added:
            added.append(emoji)
    if not added:
        return []

    channel_id = utils.get_peer_id(update.peer)
    user_id = utils.get_peer_id(update.actor)
    return [
        ReactionEvent(
            channel_id=channel_id,
            message_id=update.msg_id,
            user_id=user_id,
            emoji=emoji,
        )
        for emoji in added
    ]
