"""Application entry point for the transcribot Telegram bot."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events
from telethon.tl import types

import settings
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_mapper import build_incoming, reactions_from_update
from adapters.telegram_transport import TelegramTransport
from client import build_client
from core.builtin_commands import build_default_commands
from core.commands import CommandRouter
from core.deletion import DeletionHandler
from core.errors import RuleLoadError
from core.journal import CrashHandler, ErrorJournal
from core.orchestrator import ReplyOrchestrator
from core.processor import MessageProcessor
from core.rule_store import load_rule_sets
from core.rules_engine import TransformationEngine

NAME = "TRANSCRIBOT"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/transcribot.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting transcribot")

    load_dotenv()
    bot_token = os.getenv("BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is required in environment")

    config = settings.build_bot_config()
    storage = SQLiteStorage(settings.DB_PATH)
    journal = ErrorJournal(storage)
    crash_handler = CrashHandler(journal)
    sys.excepthook = crash_handler.excepthook

    client = build_client(settings.CLIENT_OPTIONS)
    client.loop.set_exception_handler(crash_handler.loop_exception_handler)

    transport = TelegramTransport(client)
    orchestrator = ReplyOrchestrator(config, storage, transport)
    router = CommandRouter(config.prefix)
    router.register_many(build_default_commands(config, orchestrator))
    deletion = DeletionHandler(storage, transport, config.delete_emoji)
    processor = MessageProcessor(
        config=config,
        storage=storage,
        transport=transport,
        router=router,
        orchestrator=orchestrator,
        deletion=deletion,
        journal=journal,
    )

    # Handlers are wired before the client starts; the processor drops
    # anything that arrives before startup() opens the readiness gate.
    @client.on(events.NewMessage(incoming=True))
    async def message_handler(event) -> None:
        if not processor.ready:
            return
        try:
            sender = await event.get_sender()
            await processor.handle_message(build_incoming(event.message, sender))
        except Exception as exc:
            crash_handler.handle(exc)

    @client.on(events.Raw(types.UpdateBotMessageReaction))
    async def reaction_handler(update) -> None:
        if not processor.ready:
            return
        try:
            for reaction in reactions_from_update(update):
                await processor.handle_reaction(reaction)
        except Exception as exc:
            crash_handler.handle(exc)

    # Explicit lifecycle management makes start/shutdown behavior obvious.
    client.start(bot_token=bot_token)
    me = client.loop.run_until_complete(client.get_me())
    try:
        client.loop.run_until_complete(processor.startup(settings.RULES_DIR, me))
    except RuleLoadError as exc:
        logger.critical("Rule loading failed, not starting: %s", exc)
        client.loop.run_until_complete(client.disconnect())
        raise SystemExit(1)

    logger.info("Client connected as @%s. Listening for incoming messages...", getattr(me, "username", None))
    client.run_until_disconnected()


def _check() -> None:
    """Validate the rule directory without connecting to Telegram."""

    try:
        store = load_rule_sets(settings.RULES_DIR)
    except RuleLoadError as exc:
        print(f"Rule loading failed: {exc}")
        raise SystemExit(1)

    for rule_set in store.all_rule_sets():
        print(f"{rule_set.name}: {len(rule_set.rules)} rules, {len(rule_set.translation)} translations")
    print(f"{len(store)} rule sets OK")


def _transform(text: str) -> None:
    """Print the engine output for ``text``, as the bot would reply."""

    engine = TransformationEngine(load_rule_sets(settings.RULES_DIR).all_rule_sets())
    output = engine.transform(text)
    print(output if output else "(no match)")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="transcribot")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("check", help="Load the rule files and report what was found")
    transform_parser = subparsers.add_parser("transform", help="Preview the bot's output for a text")
    transform_parser.add_argument("text", help="Text to transform")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check()
        return
    if args.command == "transform":
        _transform(args.text)
        return
    _run()


if __name__ == "__main__":
    main()
