"""JavaScriptRunner — the hosted-interpreter path.

JavaScript runs in an embedded V8 isolate (``mini-racer``). The isolate is
expensive to create, so it comes from a RuntimeLoader: built once on first
use (or on ``preload``) and reused for every run after that.

Per run:
  1. Wait for the runtime (a load failure is a ``loader-error``, not a
     runtime error, so the UI can offer "retry loading")
  2. Clear the console buffer the prelude installed
  3. Evaluate the buffer in strict mode; V8 enforces the same time budget
     the event loop races against
  4. Read back console lines, the completion value and any exception as
     one JSON document. A reply that is not that document means user code
     tampered with the bridge: the loader is reset so the next run starts
     on a fresh isolate
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from duet.config import settings
from duet.errors import RuntimeLoadError
from duet.execution.loader import RuntimeLoader
from duet.execution.python_runner import timeout_message
from duet.models.execution import (
    ERROR_MARKER,
    RESULT_MARKER,
    WARNING_MARKER,
    ExecutionErrorKind,
    ExecutionResult,
)
from duet.utils import get_logger
from duet.utils.clock import elapsed_ms, monotonic

logger = get_logger("execution.javascript")

RUNTIME_NAME = "JavaScript"

# Installed once per isolate. Everything the bridge relies on (JSON.stringify,
# String, the console buffer) is captured in a closure, and the only globals
# it exposes are frozen: ``console``, ``eval`` and ``__duetRun``. __duetRun
# returns {"out": [...], "result"?: str, "error"?: str} as a JSON string.
# User code is evaluated by a function defined outside the closure; strict
# direct eval there sees globals only.
PRELUDE = r"""
(function (global, evaluate) {
  "use strict";
  var stringify = JSON.stringify;
  var toText = String;
  var blank = Object.create;
  var define = Object.defineProperty;
  var freeze = Object.freeze;
  var out = [];

  function render(value, indent) {
    try {
      var text = indent ? stringify(value, null, indent) : stringify(value);
      return text === undefined ? toText(value) : text;
    } catch (e) {
      return toText(value);
    }
  }

  function format(value) {
    if (typeof value === 'string') return value;
    if (value === undefined) return 'undefined';
    if (typeof value === 'function' || typeof value === 'symbol' || typeof value === 'bigint') {
      return toText(value);
    }
    if (value instanceof Error) return value.name + ': ' + value.message;
    return render(value, 2);
  }

  function sink(marker) {
    return function () {
      var line = marker;
      for (var i = 0; i < arguments.length; i++) line += (i ? ' ' : '') + format(arguments[i]);
      out[out.length] = line;
    };
  }

  function pin(name, value) {
    define(global, name, {value: value, writable: false, enumerable: false, configurable: false});
  }

  pin('console', freeze({
    log: sink(''),
    info: sink(''),
    debug: sink(''),
    warn: sink(__WARNING_MARKER__),
    error: sink(__ERROR_MARKER__)
  }));
  pin('eval', global.eval);
  pin('__duetRun', function (source) {
    out = [];
    var response = blank(null);
    try {
      var value = evaluate(source);
      if (value !== undefined && value !== null) response.result = render(value);
    } catch (e) {
      response.error = (e && e.name) ? e.name + ': ' + e.message : toText(e);
    }
    response.out = out;
    out = [];
    return stringify(response);
  });
})(this, function (__duetSource) {
  "use strict";
  return eval(__duetSource);
});
""".replace("__WARNING_MARKER__", json.dumps(WARNING_MARKER)).replace(
    "__ERROR_MARKER__", json.dumps(ERROR_MARKER)
)

RUNTIME_RESET_MESSAGE = (
    "The JavaScript runtime sent back an unreadable reply and has been reset. Run the code again."
)

# Wrapper / binding noise in front of the message users care about
_ERROR_NOISE = (
    re.compile(r"^\s*(?:py_mini_racer\.)?JS\w*(?:Exception|Error)\s*:\s*"),
    re.compile(r"^\s*Uncaught\s+"),
    re.compile(r"^\s*<anonymous>:\d+(?::\d+)?:?\s*"),
)


def create_v8_context() -> Any:
    """Build a V8 isolate with the Duet prelude installed."""
    try:
        from py_mini_racer import MiniRacer
    except ImportError as e:
        raise RuntimeError("mini-racer is not installed (pip install mini-racer)") from e

    context = MiniRacer()
    context.eval(PRELUDE)
    return context


def clean_error(message: str) -> str:
    """Strip binding prefixes and stack lines from a V8 error message."""
    lines = [line for line in message.strip().splitlines() if line.strip()]
    text = lines[0] if lines else message.strip()
    changed = True
    while changed:
        changed = False
        for pattern in _ERROR_NOISE:
            stripped = pattern.sub("", text, count=1)
            if stripped != text:
                text, changed = stripped, True
    return text.strip() or "Unknown JavaScript error"


class JavaScriptRunner:
    """Runs JavaScript on the loader's shared V8 isolate.

    Args:
        loader:         RuntimeLoader producing a MiniRacer-like handle.
        timeout_ms:     Wall-clock budget (default: settings.execution_timeout_ms).
        max_memory_mb:  V8 heap limit per run (default: settings.js_max_memory_mb).
    """

    def __init__(
        self,
        loader: RuntimeLoader,
        timeout_ms: int | None = None,
        max_memory_mb: int | None = None,
    ) -> None:
        self.loader = loader
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.execution_timeout_ms
        self.max_memory_mb = max_memory_mb if max_memory_mb is not None else settings.js_max_memory_mb
        # One isolate, one run at a time
        self._lock = asyncio.Lock()

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    async def run(self, code: str, language: str = "javascript") -> ExecutionResult:
        start = monotonic()
        try:
            context = await self.loader.load()
        except RuntimeLoadError as e:
            result = ExecutionResult.failure(ExecutionErrorKind.LOADER_ERROR, str(e), language=language)
            result.duration_ms = elapsed_ms(start)
            return result

        script = f"__duetRun({json.dumps(code)})"
        raw: Any = None
        timed_out = False
        async with self._lock:
            try:
                raw = await asyncio.wait_for(
                    asyncio.to_thread(self._evaluate, context, script),
                    timeout=self.timeout_s,
                )
            except asyncio.TimeoutError:
                timed_out = True
            except Exception as e:
                if "Timeout" in type(e).__name__:
                    timed_out = True
                else:
                    result = ExecutionResult.failure(
                        ExecutionErrorKind.RUNTIME_ERROR, clean_error(str(e)), language=language
                    )
                    result.duration_ms = elapsed_ms(start)
                    return result

        if timed_out:
            logger.warning("execution_timeout", language=language, timeout_ms=self.timeout_ms)
            result = ExecutionResult.failure(
                ExecutionErrorKind.TIMEOUT, timeout_message(self.timeout_s), language=language
            )
        else:
            result = self._parse(raw, language)
        result.duration_ms = elapsed_ms(start)
        return result

    def _evaluate(self, context: Any, script: str) -> str:
        return context.eval(
            script,
            timeout=self.timeout_ms,
            max_memory=self.max_memory_mb * 1024 * 1024,
        )

    def _parse(self, raw: Any, language: str) -> ExecutionResult:
        try:
            response = json.loads(raw) if isinstance(raw, str) else None
        except ValueError:
            response = None
        if not isinstance(response, dict) or not isinstance(response.get("out", []), list):
            # Bridge reply unreadable: start over on a fresh isolate
            logger.error("runtime_reply_unreadable", language=language, reply_type=type(raw).__name__)
            self.loader.reset()
            return ExecutionResult.failure(
                ExecutionErrorKind.RUNTIME_ERROR, RUNTIME_RESET_MESSAGE, language=language
            )

        lines: list[str] = [str(line) for line in response.get("out", [])]
        output = "\n".join(lines)

        if response.get("error"):
            return ExecutionResult.failure(
                ExecutionErrorKind.RUNTIME_ERROR,
                clean_error(response["error"]),
                output=output,
                language=language,
            )

        if response.get("result") is not None:
            lines.append(f"{RESULT_MARKER}{response['result']}")
        return ExecutionResult.success("\n".join(lines), language=language)
