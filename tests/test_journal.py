from __future__ import annotations

import asyncio
import sys

import pytest

from core.errors import TransportError
from core.journal import CrashHandler, ErrorJournal, format_error_summary, is_transient
from fakes import FakeStorage


class ExitRecorder:
    def __init__(self) -> None:
        self.codes: list[int] = []

    def __call__(self, status: int) -> None:
        self.codes.append(status)


def _crash_handler():
    storage = FakeStorage()
    exits = ExitRecorder()
    return CrashHandler(ErrorJournal(storage), exit_fn=exits), storage, exits


@pytest.mark.parametrize(
    "exc, expected",
    [
        (ConnectionResetError(104, "Connection reset by peer"), True),
        (RuntimeError("read ECONNRESET"), True),
        (OSError("connection reset while reading"), True),
        (RuntimeError("boom"), False),
        (ValueError("bad value"), False),
    ],
)
def test_is_transient(exc, expected) -> None:
    assert is_transient(exc) is expected


def test_connection_reset_is_not_journaled_and_does_not_exit() -> None:
    handler, storage, exits = _crash_handler()

    handler.handle(ConnectionResetError(104, "Connection reset by peer"))

    assert storage.errors == []
    assert exits.codes == []


def test_unexpected_fault_is_journaled_once_then_exits() -> None:
    handler, storage, exits = _crash_handler()

    try:
        raise RuntimeError("engine exploded")
    except RuntimeError as exc:
        handler.handle(exc)

    assert len(storage.errors) == 1
    assert "engine exploded" in storage.errors[0].error_text
    assert "Traceback" in storage.errors[0].error_text
    assert exits.codes == [1]


def test_exit_happens_even_when_journal_write_fails() -> None:
    handler, storage, exits = _crash_handler()
    storage.fail_add_error = True

    handler.handle(RuntimeError("boom"))

    assert exits.codes == [1]


def test_excepthook_and_loop_handler_delegate() -> None:
    handler, storage, exits = _crash_handler()

    try:
        raise KeyError("missing")
    except KeyError:
        handler.excepthook(*sys.exc_info())
    handler.loop_exception_handler(None, {"message": "Task was destroyed but it is pending!"})
    handler.loop_exception_handler(None, {"message": "x", "exception": ConnectionResetError()})

    assert len(storage.errors) == 1
    assert exits.codes == [1]


def test_notify_pending_reports_and_marks() -> None:
    storage = FakeStorage()
    storage.add_error("Traceback...\nRuntimeError: first")
    storage.add_error("Traceback...\nValueError: second")
    journal = ErrorJournal(storage)
    sent: list[str] = []

    async def send(text: str) -> int:
        sent.append(text)
        return 1

    assert asyncio.run(journal.notify_pending(send)) == 2
    assert len(sent) == 1
    assert "2 new error(s)" in sent[0]
    assert "RuntimeError: first" in sent[0]
    assert "ValueError: second" in sent[0]
    assert storage.unnotified_errors() == []

    assert asyncio.run(journal.notify_pending(send)) == 0
    assert len(sent) == 1


def test_notify_pending_keeps_errors_when_send_fails() -> None:
    storage = FakeStorage()
    storage.add_error("RuntimeError: boom")
    journal = ErrorJournal(storage)

    async def send(text: str) -> int:
        raise TransportError("PEER_ID_INVALID")

    assert asyncio.run(journal.notify_pending(send)) == 0
    assert len(storage.unnotified_errors()) == 1


def test_format_error_summary_handles_empty_text() -> None:
    storage = FakeStorage()
    record = storage.add_error("")
    assert "#1: (empty)" in format_error_summary([record])
