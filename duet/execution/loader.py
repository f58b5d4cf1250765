"""RuntimeLoader — lazy, de-duplicated load of a hosted interpreter.

States:

    UNLOADED ──load()──▶ LOADING ──ok──▶ READY
        ▲                   │
        └──────failure──────┘

The in-flight load is cached as a task, not a flag: every ``load()`` that
arrives while LOADING awaits that same task, so at most one factory call is
ever running. A failed load drops the task and returns to UNLOADED so the
next ``load()`` retries.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from duet.errors import RuntimeLoadError
from duet.models.events import DiagnosticEvent, EventBus
from duet.utils import get_logger
from duet.utils.clock import elapsed_ms, monotonic

logger = get_logger("execution.loader")

T = TypeVar("T")


class LoaderState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"


class RuntimeLoader(Generic[T]):
    """Loads one runtime handle on first use and hands the same one out after.

    Args:
        name:     Human name of the runtime, used in errors and logs.
        factory:  Builds the handle. May be a coroutine function or a plain
                  callable; a plain callable runs in a worker thread.
        bus:      Diagnostics channel for load events (optional).
    """

    def __init__(
        self,
        name: str,
        factory: Callable[[], Awaitable[T] | T],
        bus: EventBus | None = None,
    ) -> None:
        self.name = name
        self._factory = factory
        self._bus = bus
        self._state = LoaderState.UNLOADED
        self._handle: T | None = None
        self._pending: asyncio.Task | None = None
        self.load_count = 0

    # ── Queries (non-blocking) ───────────────────────────────────────────────

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def handle(self) -> T | None:
        return self._handle

    def is_ready(self) -> bool:
        return self._state is LoaderState.READY

    def is_loading(self) -> bool:
        return self._state is LoaderState.LOADING

    # ── Loading ──────────────────────────────────────────────────────────────

    async def load(self) -> T:
        """Return the runtime handle, loading it first if needed.

        Raises RuntimeLoadError if the load fails.
        """
        if self._state is LoaderState.READY:
            return self._handle  # type: ignore[return-value]

        if self._pending is None:
            self._state = LoaderState.LOADING
            self._pending = asyncio.ensure_future(self._load())

        # shield: one impatient caller must not cancel everyone's load
        return await asyncio.shield(self._pending)

    async def _load(self) -> T:
        self.load_count += 1
        start = monotonic()
        logger.info("runtime_loading", runtime=self.name, attempt=self.load_count)
        try:
            handle = await self._invoke_factory()
        except Exception as e:
            duration_ms = elapsed_ms(start)
            self._state = LoaderState.UNLOADED
            self._pending = None
            logger.error("runtime_load_failed", runtime=self.name, error=str(e), duration_ms=duration_ms)
            self._emit("runtime_load_failed", duration_ms, error=str(e))
            raise RuntimeLoadError(self.name, str(e) or type(e).__name__) from e

        duration_ms = elapsed_ms(start)
        self._handle = handle
        self._state = LoaderState.READY
        self._pending = None
        logger.info("runtime_ready", runtime=self.name, duration_ms=duration_ms)
        self._emit("runtime_loaded", duration_ms)
        return handle

    async def _invoke_factory(self) -> Any:
        if inspect.iscoroutinefunction(self._factory):
            return await self._factory()
        result = await asyncio.to_thread(self._factory)
        if inspect.isawaitable(result):
            result = await result
        return result

    def reset(self) -> None:
        """Forget the handle and go back to UNLOADED (teardown / tests)."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._handle = None
        self._state = LoaderState.UNLOADED

    def _emit(self, event_type: str, duration_ms: float, error: str = "") -> None:
        if self._bus is None:
            return
        self._bus.emit(DiagnosticEvent(
            event_type=event_type,
            source="execution.loader",
            payload={"runtime": self.name, "attempt": self.load_count},
            error=error,
            duration_ms=duration_ms,
        ))
