"""SessionService — the session operations the UI layer talks to.

Composes one SessionRepository with one ChangeNotifier. Every operation
except ``subscribe`` is a coroutine even though nothing here does I/O, so a
networked store can replace the in-memory one without touching call sites.

Absence is data (``None`` / ``False``). Only programmer errors raise.
"""

from __future__ import annotations

from duet.errors import SessionValidationError
from duet.models.events import EventBus
from duet.models.session import Participant, Session
from duet.sessions.notifier import ChangeNotifier, Observer, Unsubscribe
from duet.sessions.repository import SessionRepository
from duet.utils import get_logger

logger = get_logger("sessions.service")


def _required_text(value: object, field: str) -> str:
    if not isinstance(value, str):
        raise SessionValidationError(f"{field} must be a string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise SessionValidationError(f"{field} must not be blank")
    return stripped


def _text(value: object, field: str) -> str:
    if not isinstance(value, str):
        raise SessionValidationError(f"{field} must be a string, got {type(value).__name__}")
    return value


class SessionService:
    """Create, join, edit and watch shared sessions.

    Build with no arguments for a self-contained store, or pass a repository
    (and optionally a notifier) to share state. The repository's change hook
    is pointed at the notifier either way.
    """

    def __init__(
        self,
        repository: SessionRepository | None = None,
        notifier: ChangeNotifier | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.repository = repository or SessionRepository()
        self.notifier = notifier or ChangeNotifier(self.repository.get, bus=bus)
        self.repository.set_change_hook(self.notifier.notify)

    async def create_session(self, title: str, host_name: str) -> Session:
        title = _required_text(title, "title")
        host_name = _required_text(host_name, "host_name")
        return self.repository.create(title, host_name)

    async def get_session(self, session_id: str) -> Session | None:
        return self.repository.get(session_id)

    async def join_session(self, session_id: str, name: str) -> Participant | None:
        name = _required_text(name, "name")
        participant = self.repository.join(session_id, name)
        if participant is None:
            logger.info("join_unknown_session", session_id=session_id)
        return participant

    async def leave_session(self, session_id: str, participant_id: str) -> bool:
        return self.repository.leave(session_id, participant_id)

    async def update_code(self, session_id: str, code: str) -> bool:
        return self.repository.update_code(session_id, _text(code, "code"))

    async def update_language(self, session_id: str, language: str) -> bool:
        return self.repository.update_language(session_id, _text(language, "language"))

    def subscribe(self, session_id: str, on_change: Observer) -> Unsubscribe:
        if not callable(on_change):
            raise SessionValidationError("on_change must be callable")
        return self.notifier.subscribe(session_id, on_change)

    def close(self) -> None:
        """Drop all observers and sessions."""
        self.notifier.clear()
        self.repository.clear()
