"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and transport adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from core.models import ErrorRecord, ReplyRecord
from core.replies import Reply


class StoragePort(Protocol):
    """Storage operations required by the core pipeline.

    Each operation is atomic on its own; nothing spans several calls.
    Failures are raised as ``StorageError``.
    """

    def init_db(self) -> None:
        ...

    def add_reply(self, record: ReplyRecord) -> None:
        ...

    def lookup_reply(self, channel_id: int, message_id: int) -> Optional[ReplyRecord]:
        """Find a record by its origin message id or by any of its reply ids."""
        ...

    def delete_reply(self, channel_id: int, origin_message_id: int) -> bool:
        ...

    def add_error(self, error_text: str) -> ErrorRecord:
        ...

    def unnotified_errors(self) -> List[ErrorRecord]:
        ...

    def mark_notified(self, error_ids: Sequence[int]) -> None:
        ...


class TransportPort(Protocol):
    """Chat operations required by the core pipeline.

    Failures are raised as ``TransportError``.
    """

    async def send(self, channel_id: int, reply: Reply, reply_to: Optional[int] = None) -> int:
        """Send a reply and return the id of the created message."""
        ...

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        ...

    async def delete(self, channel_id: int, message_ids: Sequence[int]) -> None:
        ...
