"""Reaction-triggered deletion of the bot's replies.

A reply record is ``Active`` while it exists and ``Deleted`` once removed.
Only the author of the origin message may delete, and only with the
configured emoji. Transport deletion runs before record deletion: a record
left behind after its messages are gone is harmless, while the reverse would
strand replies that nobody can delete any more.
"""

from __future__ import annotations

import logging
from typing import Optional, Set, Tuple

from core.errors import StorageError, TransportError
from core.models import ReactionEvent
from core.ports import StoragePort, TransportPort

LOGGER = logging.getLogger(__name__)


class DeletionHandler:
    """Validates delete reactions and removes replies together with their record."""

    def __init__(
        self,
        storage: StoragePort,
        transport: TransportPort,
        delete_emoji: str,
        bot_user_id: Optional[int] = None,
    ) -> None:
        self._storage = storage
        self._transport = transport
        self._delete_emoji = delete_emoji
        self._bot_user_id = bot_user_id
        self._in_flight: Set[Tuple[int, int]] = set()

    def set_bot_user_id(self, bot_user_id: int) -> None:
        self._bot_user_id = bot_user_id

    async def handle(self, reaction: ReactionEvent) -> bool:
        """Return ``True`` when the reaction deleted a reply."""

        if self._bot_user_id is not None and reaction.user_id == self._bot_user_id:
            return False
        if reaction.emoji != self._delete_emoji:
            return False

        record = self._storage.lookup_reply(reaction.channel_id, reaction.message_id)
        if record is None:
            return False
        if record.origin_author_id != reaction.user_id:
            LOGGER.debug(
                "Ignoring delete reaction from %s on chat:%s msg:%s (author is %s)",
                reaction.user_id,
                reaction.channel_id,
                reaction.message_id,
                record.origin_author_id,
            )
            return False

        key = (record.origin_channel_id, record.origin_message_id)
        # A second reaction may arrive while the first one is still awaiting the transport.
        if key in self._in_flight:
            return False
        self._in_flight.add(key)
        try:
            try:
                await self._transport.delete(record.origin_channel_id, record.reply_message_ids)
            except TransportError as exc:
                LOGGER.error("error:delete chat:%s msg:%s: %s", key[0], key[1], exc)
                return False

            try:
                self._storage.delete_reply(record.origin_channel_id, record.origin_message_id)
            except StorageError as exc:
                LOGGER.warning("Reply record chat:%s msg:%s left orphaned: %s", key[0], key[1], exc)
        finally:
            self._in_flight.discard(key)

        LOGGER.info(
            "success:delete chat:%s msg:%s replies=%s",
            key[0],
            key[1],
            list(record.reply_message_ids),
        )
        return True
