"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for storage and
transport, enabling other chat frontends or adapters without changes here.

The pipeline enforces a strict order per message:
1) Drop everything until startup has finished (readiness gate)
2) Ignore bots, including ourselves
3) Try the transformation engine; output is replied to and recorded
4) Only when nothing was transformed, try command routing
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Union

from core.commands import CommandRouter
from core.config import BotConfig
from core.deletion import DeletionHandler
from core.errors import StorageError, TransportError
from core.journal import ErrorJournal
from core.models import IncomingMessage, ReactionEvent
from core.orchestrator import ReplyOrchestrator
from core.ports import StoragePort, TransportPort
from core.replies import PlainReply
from core.rule_store import load_rule_sets
from core.rules_engine import TransformationEngine

LOGGER = logging.getLogger(__name__)


class MessageProcessor:
    """Owns the application state and routes transport events through the core."""

    def __init__(
        self,
        config: BotConfig,
        storage: StoragePort,
        transport: TransportPort,
        router: CommandRouter,
        orchestrator: ReplyOrchestrator,
        deletion: DeletionHandler,
        journal: ErrorJournal,
    ) -> None:
        self._config = config
        self._storage = storage
        self._transport = transport
        self._router = router
        self._orchestrator = orchestrator
        self._deletion = deletion
        self._journal = journal
        self._engine: Optional[TransformationEngine] = None
        self._bot_user_id: Optional[int] = None
        self.ready = False

    @property
    def engine(self) -> Optional[TransformationEngine]:
        return self._engine

    async def startup(self, rules_dir: Union[str, Path], bot_user: Any = None) -> None:
        """Load rules, prepare reply tracking, report old crashes, then open the gate.

        A rule loading error propagates: the bot must never become ready with
        a partial rule store.
        """

        store = await asyncio.to_thread(load_rule_sets, rules_dir)
        self._engine = TransformationEngine(store.all_rule_sets())

        self._storage.init_db()

        if bot_user is not None:
            self._bot_user_id = getattr(bot_user, "id", None)
            self._orchestrator.set_bot_user(bot_user)
            if self._bot_user_id is not None:
                self._deletion.set_bot_user_id(self._bot_user_id)

        if self._config.owner_id is not None:
            await self._journal.notify_pending(self._notify_owner)
        else:
            LOGGER.info("No owner_id configured; skipping error notifications")

        self.ready = True
        LOGGER.info("Ready: %s rule sets, prefix %r", len(store), self._config.prefix)

    async def _notify_owner(self, text: str) -> int:
        # Raw text: headlines like `__init__(*args)` are not Markdown.
        return await self._transport.send(self._config.owner_id, PlainReply(text))

    def _is_own_or_bot(self, message: IncomingMessage) -> bool:
        if message.author_is_bot:
            return True
        return self._bot_user_id is not None and message.author_id == self._bot_user_id

    async def handle_message(self, message: IncomingMessage) -> None:
        """Process one incoming message through the pipeline."""

        if not self.ready or self._engine is None:
            return
        if self._is_own_or_bot(message):
            return
        # Media-only messages without captions carry nothing to match.
        if not message.text.strip():
            return

        try:
            if await self._transform(message):
                return
            await self._router.dispatch(message)
        except (StorageError, TransportError):
            LOGGER.exception("Error while processing %s", message.summary())

    async def _transform(self, message: IncomingMessage) -> bool:
        """Reply with engine output; return whether the message was parsed."""

        matches = self._engine.search(message.text)
        if not matches:
            return False
        rendered = self._engine.render(matches)
        if not rendered:
            return False
        await self._orchestrator.respond(message, rendered)
        return True

    async def handle_reaction(self, reaction: ReactionEvent) -> None:
        """Pass a reaction to the deletion state machine once ready."""

        if not self.ready:
            return
        try:
            await self._deletion.handle(reaction)
        except (StorageError, TransportError):
            LOGGER.exception(
                "Error while handling reaction on chat:%s msg:%s",
                reaction.channel_id,
                reaction.message_id,
            )
