"""Execution schemas — the uniform result every language strategy returns."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

# Line markers shared by every language so the output panel looks the same.
RESULT_MARKER = "→ "
WARNING_MARKER = "⚠️ "
ERROR_MARKER = "❌ "

NO_OUTPUT_PLACEHOLDER = "Code executed successfully (no output)"


class ExecutionErrorKind(str, Enum):
    """Why a run failed. Returned as data, never raised."""

    UNSUPPORTED_LANGUAGE = "unsupported-language"
    TIMEOUT = "timeout"
    RUNTIME_ERROR = "runtime-error"
    LOADER_ERROR = "loader-error"


class ExecutionResult(BaseModel):
    """Outcome of running one buffer.

    On success ``error`` is None and ``output`` is never blank. On failure
    ``error`` carries the message and ``output`` may hold whatever was
    printed before the failure.
    """

    output: str = Field(default="", description="Captured output, trimmed")
    error: str | None = Field(default=None, description="Readable failure message")
    error_kind: ExecutionErrorKind | None = Field(default=None)
    language: str = Field(default="", description="Language id the run was routed by")
    duration_ms: float = Field(default=0.0, description="Wall-clock time of the run")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, output: str, language: str = "") -> ExecutionResult:
        return cls(output=output.strip() or NO_OUTPUT_PLACEHOLDER, language=language)

    @classmethod
    def failure(
        cls,
        kind: ExecutionErrorKind,
        error: str,
        output: str = "",
        language: str = "",
    ) -> ExecutionResult:
        return cls(output=output.strip(), error=error, error_kind=kind, language=language)
