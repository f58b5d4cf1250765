"""ExecutionDispatcher — routes (code, language) to a strategy.

Routing:
  - direct   → PythonRunner (Cython goes through the stripper first)
  - hosted   → JavaScriptRunner, via the shared RuntimeLoader
  - anything else → ``unsupported-language`` with empty output, nothing run

Whatever happens inside a strategy, ``execute()`` returns an
ExecutionResult. User-code failures, timeouts and load failures are data;
nothing is retried.
"""

from __future__ import annotations

from typing import Any, Protocol

from duet.config import settings
from duet.execution.javascript_runner import RUNTIME_NAME, JavaScriptRunner, create_v8_context
from duet.execution.languages import (
    LANGUAGES,
    ExecutionPath,
    normalize_language,
    unsupported_message,
)
from duet.execution.loader import RuntimeLoader
from duet.execution.python_runner import PythonRunner
from duet.models.events import DiagnosticEvent, EventBus
from duet.models.execution import ExecutionErrorKind, ExecutionResult
from duet.utils import get_logger
from duet.utils.clock import elapsed_ms, monotonic

logger = get_logger("execution.dispatcher")


class LanguageRunner(Protocol):
    async def run(self, code: str, language: str) -> ExecutionResult: ...


class ExecutionDispatcher:
    """Runs user code for any registered language.

    Args:
        timeout_ms:     Per-run budget (default: settings.execution_timeout_ms).
        loader:         RuntimeLoader for the hosted language. Built lazily
                        around ``create_v8_context`` when omitted.
        bus:            Diagnostics channel (optional).
        max_memory_mb:  V8 heap limit for hosted runs.
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        loader: RuntimeLoader | None = None,
        bus: EventBus | None = None,
        max_memory_mb: int | None = None,
    ) -> None:
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.execution_timeout_ms
        self.bus = bus
        self.loader: RuntimeLoader[Any] = loader or RuntimeLoader(RUNTIME_NAME, create_v8_context, bus=bus)

        hosted = JavaScriptRunner(self.loader, self.timeout_ms, max_memory_mb)
        self._runners: dict[str, LanguageRunner] = {}
        for spec in LANGUAGES.values():
            if spec.path is ExecutionPath.DIRECT:
                self._runners[spec.id] = PythonRunner(self.timeout_ms, transform=spec.transform)
            elif spec.path is ExecutionPath.HOSTED:
                self._runners[spec.id] = hosted

    def supports(self, language: str) -> bool:
        return normalize_language(language) in self._runners

    async def execute(self, code: str, language: str) -> ExecutionResult:
        """Run ``code`` as ``language``. Never raises for user-code problems."""
        if not isinstance(code, str):
            raise TypeError(f"code must be a string, got {type(code).__name__}")

        start = monotonic()
        language_id = normalize_language(language)
        runner = self._runners.get(language_id)

        if runner is None:
            result = ExecutionResult.failure(
                ExecutionErrorKind.UNSUPPORTED_LANGUAGE,
                unsupported_message(language),
                language=language_id,
            )
        else:
            try:
                result = await runner.run(code, language_id)
            except Exception as e:
                logger.error("strategy_failed", language=language_id, error=str(e))
                result = ExecutionResult.failure(
                    ExecutionErrorKind.RUNTIME_ERROR,
                    f"Unexpected execution failure: {e}",
                    language=language_id,
                )

        result.duration_ms = elapsed_ms(start)
        self._record(result)
        return result

    # ── Hosted runtime ───────────────────────────────────────────────────────

    async def preload_runtime(self) -> Any:
        """Load the hosted runtime now. Raises RuntimeLoadError on failure."""
        return await self.loader.load()

    def is_runtime_ready(self) -> bool:
        return self.loader.is_ready()

    def is_runtime_loading(self) -> bool:
        return self.loader.is_loading()

    def close(self) -> None:
        """Drop the hosted runtime, cancelling a load still in flight."""
        self.loader.reset()

    # ── Internals ────────────────────────────────────────────────────────────

    def _record(self, result: ExecutionResult) -> None:
        kind = result.error_kind.value if result.error_kind else None
        logger.info(
            "execution_complete",
            language=result.language,
            ok=result.ok,
            error_kind=kind,
            duration_ms=result.duration_ms,
            output_len=len(result.output),
        )
        if self.bus is not None:
            self.bus.emit(DiagnosticEvent(
                event_type="execution_complete" if result.ok else "execution_error",
                source="execution.dispatcher",
                payload={"language": result.language, "error_kind": kind},
                error=result.error or "",
                duration_ms=result.duration_ms,
            ))
