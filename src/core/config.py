"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.replies import Reply


@dataclass(frozen=True)
class BotConfig:
    """Runtime settings consumed by the pipeline, orchestrator, and handlers."""

    prefix: str
    delete_emoji: str
    owner_id: Optional[int]
    embeds_active: bool
    timeout_chars: int
    timeout_message: Reply
    help_message: Reply

    def __post_init__(self) -> None:
        if self.timeout_chars < 1:
            raise ValueError(f"timeout_chars must be >= 1, got {self.timeout_chars}")
        if not self.prefix:
            raise ValueError("prefix must not be empty")
