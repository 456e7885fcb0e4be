"""Reply orchestration: shaping, sending, tagging, and recording replies."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, List, Optional, Sequence, Set

from core.config import BotConfig
from core.errors import StorageError, TransportError
from core.models import IncomingMessage, ReplyRecord
from core.ports import StoragePort, TransportPort
from core.replies import PlainReply, Reply, render_template, resolve_reply

LOGGER = logging.getLogger(__name__)

ELLIPSIS = "…"


class ReplyOrchestrator:
    """Sends replies for an origin message and records the association."""

    def __init__(
        self,
        config: BotConfig,
        storage: StoragePort,
        transport: TransportPort,
        bot_user: Any = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._transport = transport
        self._bot_user = bot_user
        self._pending: Set[asyncio.Task] = set()

    def set_bot_user(self, bot_user: Any) -> None:
        self._bot_user = bot_user

    def template_context(self) -> dict:
        return {"user": self._bot_user, "config": self._config}

    def render(self, template: Reply) -> Reply:
        """Interpolate a configured template and degrade it if embeds are off."""

        filled = render_template(template, self.template_context())
        return resolve_reply(filled, self._config.embeds_active)

    def build_parts(self, rendered_text: str) -> List[Reply]:
        """Split engine output into the replies that will be sent."""

        limit = self._config.timeout_chars
        if len(rendered_text) <= limit:
            return [PlainReply(rendered_text)]
        return [
            PlainReply(rendered_text[:limit] + ELLIPSIS),
            self.render(self._config.timeout_message),
        ]

    async def respond(self, origin: IncomingMessage, rendered_text: str) -> Optional[ReplyRecord]:
        """Send transformation output for ``origin``; ``None`` when sending failed."""

        parts = self.build_parts(rendered_text)
        log_code = "all" if len(parts) == 1 else "partial"
        return await self.reply(origin, parts, log_tag=f"transform/{log_code}")

    async def reply(
        self,
        origin: IncomingMessage,
        replies: Sequence[Reply],
        log_tag: str = "reply",
    ) -> Optional[ReplyRecord]:
        """Send ``replies`` in order, tag each for deletion, and persist the record.

        Nothing is persisted unless every part was sent.
        """

        sent_ids: List[int] = []
        try:
            for reply in replies:
                message_id = await self._transport.send(origin.channel_id, reply, reply_to=origin.message_id)
                sent_ids.append(message_id)
                self._tag_for_deletion(origin.channel_id, message_id)

            record = ReplyRecord(
                origin_channel_id=origin.channel_id,
                origin_message_id=origin.message_id,
                origin_author_id=origin.author_id,
                reply_message_ids=tuple(sent_ids),
                created_at=datetime.now(timezone.utc),
            )
            self._storage.add_reply(record)
        except (TransportError, StorageError) as exc:
            LOGGER.error("error:%s %s sent=%s: %s", log_tag, origin.summary(), sent_ids, exc)
            return None

        LOGGER.info("success:%s %s replies=%s", log_tag, origin.summary(), list(sent_ids))
        return record

    def _tag_for_deletion(self, channel_id: int, message_id: int) -> None:
        task = asyncio.ensure_future(self._transport.react(channel_id, message_id, self._config.delete_emoji))
        self._pending.add(task)
        task.add_done_callback(self._tagging_done)

    def _tagging_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Could not add delete reaction: %s", exc)

    async def wait_pending(self) -> None:
        """Wait for outstanding best-effort reaction tasks."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
