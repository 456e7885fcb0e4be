"""Reply formatting for Telegram.

Keeping formatting here prevents drift between commands and transformation
replies and keeps messages consistent regardless of which path sent them.
"""

from __future__ import annotations

import html
from typing import Optional, Tuple

from core.replies import PlainReply, Reply, StructuredReply

DIVIDER = "──────────────"


def _format_html(reply: StructuredReply) -> str:
    """Create the HTML body for a structured reply."""

    parts = []
    if reply.title:
        parts.append(f"<b>{html.escape(reply.title)}</b>")
    if reply.description:
        parts.append(html.escape(reply.description))
    if reply.fields:
        if parts:
            parts.append(DIVIDER)
        for item in reply.fields:
            parts.append("")
            if item.name:
                parts.append(f"<b>{html.escape(item.name)}</b>")
            parts.append(html.escape(item.value))
    return "\n".join(parts)


def format_reply(reply: Reply) -> Tuple[str, Optional[str]]:
    """Return ``(text, parse_mode)`` for Telethon's ``send_message``.

    Transformation output is sent without a parse mode so that characters
    such as ``*`` or ``_`` in the output reach the user untouched.
    """

    if isinstance(reply, StructuredReply):
        return _format_html(reply), "html"
    if isinstance(reply, PlainReply):
        return reply.text, ("md" if reply.formatted else None)
    raise ValueError(f"Unsupported reply type: {type(reply).__name__}")
