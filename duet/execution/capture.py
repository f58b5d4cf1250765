"""Output capture for in-host runs.

``OutputCapture`` swaps the process-wide output channels for the duration of
one run and puts everything back on exit, whichever way the run ended:

  - ``sys.stdout``        → plain lines
  - ``sys.stderr``        → lines tagged ``❌``
  - ``warnings``          → lines tagged ``⚠️``
  - root ``logging``      → WARNING lines tagged ``⚠️``, ERROR+ tagged ``❌``
  - ``sys.stdin``         → an empty stream, so ``input()`` fails fast

All of them feed one ``CaptureBuffer`` in call order.

Only writes made off the host thread (the one that entered the capture) land
in the buffer. The host thread keeps talking to the original streams, so the
event loop's own prints, log records and warnings never reach a run's output.
Threads whose run timed out are marked abandoned and everything they write
afterwards is dropped.
"""

from __future__ import annotations

import contextlib
import io
import logging
import sys
import threading
import warnings
from typing import TextIO

from duet.models.execution import ERROR_MARKER, RESULT_MARKER, WARNING_MARKER

_threads_lock = threading.Lock()
_running: set[int] = set()
_abandoned: set[int] = set()


def track_current_thread() -> int:
    """Register the calling worker thread; returns its ident."""
    ident = threading.get_ident()
    with _threads_lock:
        _running.add(ident)
    return ident


def untrack_thread(ident: int) -> None:
    with _threads_lock:
        _running.discard(ident)
        _abandoned.discard(ident)


def abandon_thread(ident: int | None) -> None:
    """Drop all further output from a worker that is still running."""
    with _threads_lock:
        if ident in _running:
            _abandoned.add(ident)


def is_abandoned(ident: int | None) -> bool:
    with _threads_lock:
        return ident in _abandoned


class CaptureBuffer:
    """Ordered, thread-safe list of output lines."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def append(self, text: str, marker: str = "") -> None:
        with self._lock:
            self._lines.append(f"{marker}{text}")

    def append_result(self, text: str) -> None:
        self.append(text, RESULT_MARKER)

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def text(self) -> str:
        """All lines joined and trimmed."""
        return "\n".join(self.lines).strip()


class _LineWriter(io.TextIOBase):
    """File-like object that turns worker writes into whole buffer lines.

    Writes from ``host`` pass through to ``fallback`` untouched.
    """

    def __init__(
        self,
        buffer: CaptureBuffer,
        marker: str = "",
        host: int | None = None,
        fallback: TextIO | None = None,
    ) -> None:
        super().__init__()
        self._buffer = buffer
        self._marker = marker
        self._host = host
        self._fallback = fallback
        self._pending = ""
        self._lock = threading.Lock()

    @property
    def encoding(self) -> str:
        return "utf-8"

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def write(self, s: str) -> int:
        ident = threading.get_ident()
        if is_abandoned(ident):
            return len(s)
        if ident == self._host and self._fallback is not None:
            return self._fallback.write(s)
        with self._lock:
            self._pending += s
            *complete, self._pending = self._pending.split("\n")
        for line in complete:
            self._buffer.append(line, self._marker if line else "")
        return len(s)

    def flush(self) -> None:
        if threading.get_ident() == self._host and self._fallback is not None:
            self._fallback.flush()

    def flush_pending(self) -> None:
        with self._lock:
            rest, self._pending = self._pending, ""
        if rest:
            self._buffer.append(rest, self._marker)


class _BufferHandler(logging.Handler):
    def __init__(self, buffer: CaptureBuffer, host: int) -> None:
        super().__init__(level=logging.WARNING)
        self._buffer = buffer
        self._host = host
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        if record.thread == self._host or is_abandoned(record.thread):
            return
        try:
            marker = ERROR_MARKER if record.levelno >= logging.ERROR else WARNING_MARKER
            self._buffer.append(self.format(record), marker)
        except Exception:
            self.handleError(record)


class OutputCapture:
    """Context manager redirecting worker stdout, stderr, warnings and logging into a buffer.

    Usage:
        capture = OutputCapture()
        with capture as buffer:
            ...            # hand work to another thread here
        print(buffer.text())
    """

    def __init__(self, buffer: CaptureBuffer | None = None) -> None:
        self.buffer = buffer or CaptureBuffer()
        self.stdout: _LineWriter | None = None
        self.stderr: _LineWriter | None = None
        self._host: int | None = None
        self._show_original = warnings.showwarning
        self._stack: contextlib.ExitStack | None = None

    def __enter__(self) -> CaptureBuffer:
        self._host = threading.get_ident()
        stack = contextlib.ExitStack()
        try:
            self.stdout = _LineWriter(self.buffer, host=self._host, fallback=sys.stdout)
            self.stderr = _LineWriter(self.buffer, ERROR_MARKER, host=self._host, fallback=sys.stderr)
            stack.enter_context(contextlib.redirect_stdout(self.stdout))
            stack.enter_context(contextlib.redirect_stderr(self.stderr))
            stack.enter_context(_empty_stdin())

            stack.enter_context(warnings.catch_warnings())
            warnings.simplefilter("always")
            self._show_original = warnings.showwarning
            warnings.showwarning = self._show_warning

            handler = _BufferHandler(self.buffer, self._host)
            root = logging.getLogger()
            root.addHandler(handler)
            stack.callback(root.removeHandler, handler)
        except BaseException:
            stack.close()
            raise
        self._stack = stack
        return self.buffer

    def __exit__(self, exc_type, exc, tb) -> bool:  # noqa: ANN001
        try:
            for writer in (self.stdout, self.stderr):
                if writer is not None:
                    writer.flush_pending()
        finally:
            if self._stack is not None:
                self._stack.close()
                self._stack = None
        return False

    def _show_warning(self, message, category, filename, lineno, file=None, line=None) -> None:  # noqa: ANN001
        ident = threading.get_ident()
        if ident == self._host:
            self._show_original(message, category, filename, lineno, file, line)
        elif not is_abandoned(ident):
            self.buffer.append(f"{category.__name__}: {message}", WARNING_MARKER)


@contextlib.contextmanager
def _empty_stdin():
    original = sys.stdin
    sys.stdin = io.StringIO("")
    try:
        yield
    finally:
        sys.stdin = original
