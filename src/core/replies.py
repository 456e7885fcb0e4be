"""Reply shapes and their plain-text degradation.

A reply is either plain text or a structured card (title, description, and
named fields). Transports that cannot render cards, or deployments that turn
them off, get the plain-text rendering instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Any, Mapping, Tuple, Union

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainReply:
    """Plain text reply. ``formatted`` marks text that carries Markdown."""

    text: str
    formatted: bool = False


@dataclass(frozen=True)
class ReplyField:
    name: str
    value: str


@dataclass(frozen=True)
class StructuredReply:
    """Card-style reply with an optional title, description, and fields."""

    title: str = ""
    description: str = ""
    fields: Tuple[ReplyField, ...] = field(default_factory=tuple)


Reply = Union[PlainReply, StructuredReply]


def reply_from_config(raw: Any) -> Reply:
    """Build a reply template from its config representation.

    Strings become plain replies; mappings with ``title``, ``description``
    and ``fields`` (a list of ``{name, value}``) become structured replies.
    """

    if isinstance(raw, str):
        return PlainReply(raw, formatted=True)
    if not isinstance(raw, Mapping):
        raise ValueError(f"Reply template must be a string or mapping, got {type(raw).__name__}")

    fields = []
    for entry in raw.get("fields", []) or []:
        if not isinstance(entry, Mapping) or "value" not in entry:
            raise ValueError(f"Reply field must be a mapping with a value: {entry!r}")
        fields.append(ReplyField(name=str(entry.get("name", "")), value=str(entry["value"])))

    return StructuredReply(
        title=str(raw.get("title", "") or ""),
        description=str(raw.get("description", "") or ""),
        fields=tuple(fields),
    )


def _interpolate(text: str, context: Mapping[str, Any]) -> str:
    if not text:
        return text
    try:
        return text.format_map(context)
    except (KeyError, AttributeError, IndexError, ValueError) as exc:
        LOGGER.warning("Template placeholder could not be filled (%s): %r", exc, text)
        return text


def render_template(template: Reply, context: Mapping[str, Any]) -> Reply:
    """Fill ``{user.…}``/``{config.…}`` placeholders in every text part."""

    if isinstance(template, PlainReply):
        return replace(template, text=_interpolate(template.text, context))

    return StructuredReply(
        title=_interpolate(template.title, context),
        description=_interpolate(template.description, context),
        fields=tuple(
            ReplyField(name=_interpolate(f.name, context), value=_interpolate(f.value, context))
            for f in template.fields
        ),
    )


def degrade(reply: StructuredReply, headers_important: bool = True) -> PlainReply:
    """Flatten a structured reply into Markdown text.

    Layout: bold title line, description line, a blank line, then the field
    bodies separated by blank lines, each optionally headed by its bold name.
    """

    title = f"**{reply.title}**\n" if reply.title else ""
    description = f"{reply.description}\n" if reply.description else ""
    bodies = []
    for item in reply.fields:
        header = f"**{item.name}**\n" if headers_important and item.name else ""
        bodies.append(f"{header}{item.value}")
    body = "\n\n".join(bodies)
    return PlainReply(f"{title}{description}\n{body}", formatted=True)


def resolve_reply(reply: Reply, embeds_active: bool, headers_important: bool = True) -> Reply:
    """Return the reply shape that should actually be sent."""

    if isinstance(reply, StructuredReply) and not embeds_active:
        return degrade(reply, headers_important)
    return reply
