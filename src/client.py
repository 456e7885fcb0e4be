"""Telegram client factory for transcribot.

The bot runs unattended, so the client is tuned to ride out network drops
and short flood waits on its own. config.json may override any of the
defaults below under its "client" section.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)

DEFAULT_CLIENT_OPTIONS: Dict[str, Any] = {
    "connection_retries": 10,
    "retry_delay": 5,
    "request_retries": 5,
    "auto_reconnect": True,
    # FloodWait errors up to this many seconds are slept through by Telethon.
    "flood_sleep_threshold": 60,
}

_INT_OPTIONS = ("connection_retries", "retry_delay", "request_retries", "flood_sleep_threshold", "timeout")
_BOOL_OPTIONS = ("auto_reconnect",)


def client_options(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Merge config overrides onto the defaults and coerce their types.

    Unknown keys raise ValueError before any connection is attempted.
    """

    options = dict(DEFAULT_CLIENT_OPTIONS)
    for key, value in (overrides or {}).items():
        if key in _INT_OPTIONS:
            # -1 (or None) means "retry forever" for Telethon's retry counters.
            options[key] = None if value is None else int(value)
        elif key in _BOOL_OPTIONS:
            options[key] = bool(value)
        else:
            raise ValueError(f"Unknown client option in config.json: {key!r}")
    return options


def build_client(options: Optional[Mapping[str, Any]] = None) -> TelegramClient:
    """Create the bot's Telethon client from .env credentials.

    API_ID/API_HASH come from the environment via python-dotenv. The
    session name defaults to "transcribot", which creates a local
    .session file holding the bot authorization.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "transcribot")

    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    tuned = client_options(options)
    LOGGER.info(
        "Initializing Telegram client (session %s, %s connection retries)",
        session_name,
        tuned["connection_retries"],
    )
    return TelegramClient(session_name, int(api_id), api_hash, **tuned)
