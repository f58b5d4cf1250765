"""DuetApp — the one object the UI layer holds.

Bundles a SessionService and an ExecutionDispatcher behind the surface the
room page consumes. Build one per process (or per test); nothing here is
global.
"""

from __future__ import annotations

import asyncio
from typing import Any

from duet.errors import RuntimeLoadError
from duet.execution.dispatcher import ExecutionDispatcher
from duet.execution.languages import HOSTED_LANGUAGE, LANGUAGES, LanguageSpec, normalize_language
from duet.models.events import EventBus
from duet.models.execution import ExecutionResult
from duet.models.session import Participant, Session
from duet.sessions.notifier import Observer, Unsubscribe
from duet.sessions.service import SessionService
from duet.utils import get_logger

logger = get_logger("app")

RUNTIME_HINT = "Loading {name} runtime (first run may take a few seconds)..."


class DuetApp:
    """Sessions plus execution, wired to one diagnostics bus."""

    def __init__(
        self,
        sessions: SessionService | None = None,
        dispatcher: ExecutionDispatcher | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.bus = bus or EventBus()
        self.sessions = sessions or SessionService(bus=self.bus)
        self.dispatcher = dispatcher or ExecutionDispatcher(bus=self.bus)
        self._background: set[asyncio.Task] = set()

    # ── Sessions ─────────────────────────────────────────────────────────────

    async def create_session(self, title: str, host_name: str) -> Session:
        return await self.sessions.create_session(title, host_name)

    async def get_session(self, session_id: str) -> Session | None:
        return await self.sessions.get_session(session_id)

    async def join_session(self, session_id: str, name: str) -> Participant | None:
        return await self.sessions.join_session(session_id, name)

    async def leave_session(self, session_id: str, participant_id: str) -> bool:
        return await self.sessions.leave_session(session_id, participant_id)

    async def update_code(self, session_id: str, code: str) -> bool:
        return await self.sessions.update_code(session_id, code)

    async def update_language(self, session_id: str, language: str) -> bool:
        """Switch the session's language.

        Switching to the hosted language starts loading its runtime in the
        background so the first run is not the slow one.
        """
        changed = await self.sessions.update_language(session_id, language)
        if changed and normalize_language(language) == HOSTED_LANGUAGE:
            self._preload_in_background()
        return changed

    def subscribe(self, session_id: str, on_change: Observer) -> Unsubscribe:
        return self.sessions.subscribe(session_id, on_change)

    # ── Execution ────────────────────────────────────────────────────────────

    async def execute(self, code: str, language: str) -> ExecutionResult:
        return await self.dispatcher.execute(code, language)

    async def preload_runtime(self) -> Any:
        return await self.dispatcher.preload_runtime()

    def is_runtime_ready(self) -> bool:
        return self.dispatcher.is_runtime_ready()

    def is_runtime_loading(self) -> bool:
        return self.dispatcher.is_runtime_loading()

    def runtime_hint(self, language: str) -> str | None:
        """Message to show before running ``language`` while its runtime is cold."""
        if normalize_language(language) != HOSTED_LANGUAGE or self.is_runtime_ready():
            return None
        return RUNTIME_HINT.format(name=LANGUAGES[HOSTED_LANGUAGE].name)

    @staticmethod
    def supported_languages() -> list[LanguageSpec]:
        return list(LANGUAGES.values())

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Cancel background loads, drop the runtime and all sessions and observers."""
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self.dispatcher.close()
        self.sessions.close()

    def _preload_in_background(self) -> None:
        if self.is_runtime_ready() or self.is_runtime_loading():
            return
        task = asyncio.ensure_future(self._background_preload())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_preload(self) -> None:
        try:
            await self.preload_runtime()
        except RuntimeLoadError as e:
            logger.warning("background_preload_failed", error=str(e))
