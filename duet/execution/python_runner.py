"""PythonRunner — direct, in-host execution of Python buffers.

Isolation model:
  - Each run gets a fresh ``__main__`` namespace (nothing carries over)
  - The code runs on a daemon worker thread; the event loop races it
    against the wall-clock budget with ``asyncio.wait_for``
  - Direct runs take turns: every runner on an event loop shares one lock,
    held for the whole capture, so two runs never see each other's streams
  - stdout / stderr / warnings / logging are captured for the duration
    of the race and restored afterwards, timeout included
  - If the last top-level statement is an expression its value is the
    run's result and is appended as a ``→`` line

Known gap: the timeout is a race, not an interrupt. A run that never
yields keeps its worker thread busy after the timeout has been reported.
The thread is a daemon so it never blocks interpreter exit. Once the race
is lost the worker is marked abandoned: its ``print`` calls and anything it
writes while a later run is being captured are dropped. Direct writes to
``sys.stdout`` made between runs still reach the host's stream.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import threading
import traceback
import weakref
from dataclasses import dataclass
from types import CodeType
from typing import Any, Callable

from duet.config import settings
from duet.execution.capture import OutputCapture, abandon_thread, track_current_thread, untrack_thread
from duet.models.execution import ExecutionErrorKind, ExecutionResult
from duet.utils import get_logger
from duet.utils.clock import elapsed_ms, monotonic

logger = get_logger("execution.python")

SOURCE_NAME = "<session>"

_run_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = weakref.WeakKeyDictionary()


def direct_run_lock() -> asyncio.Lock:
    """The lock every direct run on the running event loop takes turns on."""
    loop = asyncio.get_running_loop()
    lock = _run_locks.get(loop)
    if lock is None:
        lock = _run_locks[loop] = asyncio.Lock()
    return lock


def timeout_message(timeout_s: float) -> str:
    return f"Execution timed out ({timeout_s:g}s limit)"


@dataclass(slots=True)
class _Outcome:
    value: Any = None
    has_value: bool = False
    error: BaseException | None = None


def compile_source(code: str) -> tuple[CodeType, CodeType | None]:
    """Compile ``code`` into a body and an optional trailing expression.

    Raises SyntaxError for code that does not parse.
    """
    tree = ast.parse(code, filename=SOURCE_NAME, mode="exec")
    tail = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last = tree.body.pop()
        tail = compile(ast.Expression(body=last.value), SOURCE_NAME, "eval")
    return compile(tree, SOURCE_NAME, "exec"), tail


def describe_exception(exc: BaseException) -> str:
    """One readable line: ``ExcType: message (line N)``. No traceback."""
    if isinstance(exc, SyntaxError):
        message = f"{type(exc).__name__}: {exc.msg}"
        return f"{message} (line {exc.lineno})" if exc.lineno else message

    text = str(exc)
    message = f"{type(exc).__name__}: {text}" if text else type(exc).__name__
    line = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == SOURCE_NAME:
            line = frame.lineno
    return f"{message} (line {line})" if line else message


def _execute(body: CodeType, tail: CodeType | None, namespace: dict[str, Any]) -> _Outcome:
    try:
        exec(body, namespace)
        if tail is not None:
            return _Outcome(value=eval(tail, namespace), has_value=True)
        return _Outcome()
    except SystemExit:
        return _Outcome()
    except BaseException as e:  # carried back to the event loop as data
        return _Outcome(error=e)


def run_in_daemon_thread(
    fn: Callable[..., Any], *args: Any, name: str = "duet-run"
) -> tuple[asyncio.Future, threading.Thread]:
    """Start ``fn(*args)`` on a tracked daemon thread.

    Returns a future for its result and the thread itself, so a caller that
    stops waiting can abandon it.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def resolve(result: Any) -> None:
        if not future.done():
            future.set_result(result)

    def target() -> None:
        ident = track_current_thread()
        try:
            result = fn(*args)
        finally:
            untrack_thread(ident)
        try:
            loop.call_soon_threadsafe(resolve, result)
        except RuntimeError:
            # Event loop already closed: the caller gave up long ago.
            logger.debug("late_result_dropped", thread=name)

    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()
    return future, thread


def fresh_namespace(stdout: Any) -> dict[str, Any]:
    """A ``__main__`` namespace whose bare ``print`` writes to ``stdout``."""

    def print_(*args: Any, sep: Any = " ", end: Any = "\n", file: Any = None, flush: bool = False) -> None:
        builtins.print(*args, sep=sep, end=end, file=stdout if file is None else file, flush=flush)

    scope = dict(vars(builtins))
    scope["print"] = print_
    return {"__name__": "__main__", "__builtins__": scope}


def format_value(value: Any) -> str:
    try:
        return repr(value)
    except Exception:
        return "<unrepresentable>"


class PythonRunner:
    """Runs Python source in-process with captured output and a timeout.

    Args:
        timeout_ms:  Wall-clock budget (default: settings.execution_timeout_ms).
        transform:   Optional source-to-source rewrite applied before parsing
                     (the Cython stripper plugs in here).
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        transform: Callable[[str], str] | None = None,
    ) -> None:
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.execution_timeout_ms
        self.transform = transform

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    async def run(self, code: str, language: str = "python") -> ExecutionResult:
        start = monotonic()
        source = self.transform(code) if self.transform else code

        try:
            body, tail = compile_source(source)
        except SyntaxError as e:
            return self._finish(
                ExecutionResult.failure(
                    ExecutionErrorKind.RUNTIME_ERROR, describe_exception(e), language=language
                ),
                start,
            )

        outcome: _Outcome | None = None

        async with direct_run_lock():
            capture = OutputCapture()
            with capture as buffer:
                namespace = fresh_namespace(capture.stdout)
                pending, worker = run_in_daemon_thread(
                    _execute, body, tail, namespace, name=f"duet-{language}"
                )
                try:
                    outcome = await asyncio.wait_for(pending, timeout=self.timeout_s)
                except asyncio.TimeoutError:
                    abandon_thread(worker.ident)
                    outcome = None

        if outcome is None:
            logger.warning("execution_timeout", language=language, timeout_ms=self.timeout_ms)
            result = ExecutionResult.failure(
                ExecutionErrorKind.TIMEOUT, timeout_message(self.timeout_s), language=language
            )
        elif outcome.error is not None:
            result = ExecutionResult.failure(
                ExecutionErrorKind.RUNTIME_ERROR,
                describe_exception(outcome.error),
                output=buffer.text(),
                language=language,
            )
        else:
            if outcome.has_value and outcome.value is not None:
                buffer.append_result(format_value(outcome.value))
            result = ExecutionResult.success(buffer.text(), language=language)

        return self._finish(result, start)

    @staticmethod
    def _finish(result: ExecutionResult, start: float) -> ExecutionResult:
        result.duration_ms = elapsed_ms(start)
        return result
