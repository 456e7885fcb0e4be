"""Static configuration for transcribot.

All user-editable settings (prefix, reactions, limits, reply templates,
paths, client tuning, logging) live in a single JSON file for quick edits
without touching Python. Secrets stay in the environment (.env).
"""

import json
import os

from core.config import BotConfig
from core.replies import reply_from_config

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to the rules directory; TRANSCRIBOT_CONFIG overrides it.
CONFIG_PATH = os.getenv("TRANSCRIBOT_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _project_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Command trigger, e.g. "!" for "!help".
PREFIX = str(_CONFIG.get("prefix", "!"))

# Reaction the bot adds to its replies; the original author reacting with the
# same emoji deletes them. Telegram only accepts its standard reaction set.
DELETE_EMOJI = str(_CONFIG.get("delete_emoji", "👎"))

# Owner receives the "new errors since last restart" notice.
_owner = _CONFIG.get("owner_id")
OWNER_ID = int(_owner) if _owner not in (None, "") else None

# When false, structured replies are flattened into Markdown text.
EMBEDS_ACTIVE = bool(_CONFIG.get("embeds", {}).get("active", True))

# Output longer than this is cut and followed by the timeout message.
TIMEOUT_CHARS = int(_CONFIG.get("timeout_chars", 2000))
TIMEOUT_MESSAGE = reply_from_config(
    _CONFIG.get("timeout_message", "Output was cut after {config.timeout_chars} characters.")
)
HELP_MESSAGE = reply_from_config(_CONFIG.get("help_message", "Send x/…/ to convert X-SAMPA to IPA."))

# Rule documents, one rule set per YAML file.
RULES_DIR = _project_path(_CONFIG.get("rules_dir", "rules"))

# Where to store the SQLite database.
DB_PATH = _project_path(_CONFIG.get("db_path", "transcribot.db"))

# TelegramClient tuning; client.client_options fills in the defaults.
CLIENT_OPTIONS = dict(_CONFIG.get("client", {}))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def build_bot_config() -> BotConfig:
    """Return the frozen runtime config used by the core."""

    return BotConfig(
        prefix=PREFIX,
        delete_emoji=DELETE_EMOJI,
        owner_id=OWNER_ID,
        embeds_active=EMBEDS_ACTIVE,
        timeout_chars=TIMEOUT_CHARS,
        timeout_message=TIMEOUT_MESSAGE,
        help_message=HELP_MESSAGE,
    )
