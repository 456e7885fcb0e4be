"""Prefix command routing."""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from core.models import IncomingMessage

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[..., Awaitable[Any]]


class CommandRouter:
    """Maps ``<prefix><name> args…`` messages to registered handlers.

    Handlers are registered before the client starts and are called as
    ``await handler(message, *args)``.
    """

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        # The prefix is escaped so characters like "!" or "." are taken literally.
        self._matcher = re.compile(rf"^{re.escape(prefix)}(\S*) ?(.*)", re.DOTALL)
        self._commands: Dict[str, CommandHandler] = {}

    @property
    def commands(self) -> Mapping[str, CommandHandler]:
        return dict(self._commands)

    def register(self, name: str, handler: CommandHandler) -> None:
        """Register a single command; an existing name is overwritten."""

        self._commands[name] = handler

    def register_many(self, handlers: Mapping[str, CommandHandler]) -> None:
        for name, handler in handlers.items():
            self.register(name, handler)

    def route(self, text: str) -> Optional[Tuple[str, List[str]]]:
        """Return ``(name, args)`` for a registered command, else ``None``."""

        tokens = self._matcher.match(text)
        if tokens is None:
            return None
        name, remainder = tokens.groups()
        if name not in self._commands:
            return None
        args = remainder.split(" ") if remainder else []
        return name, args

    async def dispatch(self, message: IncomingMessage) -> bool:
        """Invoke the handler for ``message`` if it names a registered command.

        Handler faults are logged and never propagate so one bad command
        cannot affect later messages.
        """

        routed = self.route(message.text)
        if routed is None:
            return False
        name, args = routed
        handler = self._commands[name]

        try:
            result = await handler(message, *args)
        except Exception:
            LOGGER.exception("error:command/%s %s", name, message.summary())
            return True

        LOGGER.info("success:command/%s %s", name, "" if result is None else str(result))
        return True
