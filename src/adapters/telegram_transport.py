"""Telegram transport adapter.

Implements the core TransportPort on top of a connected Telethon client.
"""

from __future__ import annotations

from typing import Optional, Sequence

from telethon import functions, types
from telethon.errors import RPCError

from adapters.reply_formatting import format_reply
from core.errors import TransportError
from core.replies import Reply

# ValueError is what Telethon raises for peers it cannot resolve.
_TRANSPORT_ERRORS = (RPCError, ConnectionError, OSError, ValueError)


class TelegramTransport:
    """Transport adapter that sends, reacts to, and deletes Telegram messages."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, channel_id: int, reply: Reply, reply_to: Optional[int] = None) -> int:
        """Send a reply and return the new message id."""

        text, parse_mode = format_reply(reply)
        try:
            message = await self._client.send_message(
                channel_id,
                text,
                reply_to=reply_to,
                parse_mode=parse_mode,
                link_preview=False,
            )
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(f"send to {channel_id} failed: {exc}") from exc
        return message.id

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        """Set ``emoji`` as the bot's reaction on a message."""

        request = functions.messages.SendReactionRequest(
            peer=channel_id,
            msg_id=message_id,
            reaction=[types.ReactionEmoji(emoticon=emoji)],
        )
        try:
            await self._client(request)
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(f"reaction on {channel_id}/{message_id} failed: {exc}") from exc

    async def delete(self, channel_id: int, message_ids: Sequence[int]) -> None:
        """Delete messages for everyone."""

        try:
            await self._client.delete_messages(channel_id, list(message_ids))
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(f"delete of {list(message_ids)} in {channel_id} failed: {exc}") from exc
