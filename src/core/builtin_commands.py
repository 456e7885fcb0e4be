"""Commands available out of the box."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from core.commands import CommandHandler
from core.config import BotConfig
from core.models import IncomingMessage
from core.orchestrator import ReplyOrchestrator
from core.replies import PlainReply


def build_default_commands(config: BotConfig, orchestrator: ReplyOrchestrator) -> Dict[str, CommandHandler]:
    """Return the built-in command table, bound to ``orchestrator``."""

    async def help_command(message: IncomingMessage, *args: str) -> str:
        reply = orchestrator.render(config.help_message)
        record = await orchestrator.reply(message, [reply], log_tag="command/help")
        return "sent" if record else "not sent"

    async def ping_command(message: IncomingMessage, *args: str) -> str:
        latency = datetime.now(timezone.utc) - message.date
        millis = max(0, int(latency.total_seconds() * 1000))
        await orchestrator.reply(message, [PlainReply(f"pong ({millis} ms)")], log_tag="command/ping")
        return f"{millis} ms"

    return {
        "help": help_command,
        "ping": ping_command,
    }
