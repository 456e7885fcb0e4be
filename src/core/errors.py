"""Exception types shared by the core and its adapters."""

from __future__ import annotations


class TranscribotError(Exception):
    """Base class for all transcribot errors."""


class RuleLoadError(TranscribotError):
    """Raised when a rule document cannot be loaded or compiled."""


class StorageError(TranscribotError):
    """Raised by storage adapters when a persistence operation fails."""


class TransportError(TranscribotError):
    """Raised by transport adapters when a send, react, or delete fails."""
