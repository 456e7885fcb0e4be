"""Error journal and crash handling."""

from __future__ import annotations

import logging
import os
import traceback
from typing import Awaitable, Callable, List, Optional

from core.errors import StorageError, TransportError
from core.models import ErrorRecord
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)

TRANSIENT_MARKERS = ("ECONNRESET", "connection reset")


def describe_error(exc: BaseException) -> str:
    """Full traceback text stored in the journal."""

    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).strip()


def is_transient(exc: BaseException) -> bool:
    """Connection resets heal on their own and never count as crashes."""

    if isinstance(exc, ConnectionResetError):
        return True
    message = str(exc).lower()
    return any(marker.lower() in message for marker in TRANSIENT_MARKERS)


def format_error_summary(errors: List[ErrorRecord]) -> str:
    """Owner notice listing crashes recorded since the last startup."""

    lines = [f"{len(errors)} new error(s) since last restart", ""]
    for record in errors:
        # The last traceback line carries the exception type and message.
        text = record.error_text.strip()
        headline = text.splitlines()[-1] if text else "(empty)"
        timestamp = record.occurred_at.astimezone().strftime("%H:%M:%S %d-%m-%Y")
        lines.append(f"[{timestamp}] #{record.id}: {headline}")
    return "\n".join(lines)


class ErrorJournal:
    """Persists faults and surfaces the unnotified ones on startup."""

    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    def record(self, exc: BaseException) -> ErrorRecord:
        return self._storage.add_error(describe_error(exc))

    async def notify_pending(self, send: Callable[[str], Awaitable[object]]) -> int:
        """Send one summary of unnotified errors and mark them notified.

        Errors stay unnotified when the summary could not be delivered, so
        they are reported again on the next startup.
        """

        errors = self._storage.unnotified_errors()
        if not errors:
            return 0

        try:
            await send(format_error_summary(errors))
        except TransportError as exc:
            LOGGER.warning("Could not deliver error summary: %s", exc)
            return 0

        self._storage.mark_notified([record.id for record in errors])
        LOGGER.info("Reported %s error(s) from previous runs", len(errors))
        return len(errors)


def _terminate(status: int) -> None:
    logging.shutdown()
    # Skip interpreter cleanup: the process state is unknown after an uncaught fault.
    os._exit(status)


class CrashHandler:
    """Last-resort handler: journal the fault, then stop the process."""

    def __init__(
        self,
        journal: ErrorJournal,
        exit_fn: Callable[[int], None] = _terminate,
    ) -> None:
        self._journal = journal
        self._exit = exit_fn

    def handle(self, exc: BaseException) -> None:
        if is_transient(exc):
            LOGGER.warning("Connection reset, continuing: %s", exc)
            return

        LOGGER.critical("Uncaught error, shutting down", exc_info=(type(exc), exc, exc.__traceback__))
        try:
            self._journal.record(exc)
        except StorageError:
            LOGGER.exception("Could not write error journal entry")
        self._exit(1)

    def excepthook(self, exc_type, exc, tb) -> None:
        """Drop-in replacement for ``sys.excepthook``."""

        if exc is None:
            exc = exc_type()
        if exc.__traceback__ is None:
            exc = exc.with_traceback(tb)
        self.handle(exc)

    def loop_exception_handler(self, loop, context: dict) -> None:
        """Handler for ``loop.set_exception_handler``."""

        exc: Optional[BaseException] = context.get("exception")
        if exc is None:
            LOGGER.error("Event loop error: %s", context.get("message"))
            return
        self.handle(exc)
