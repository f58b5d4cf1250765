"""SessionRepository — owns every Session and Participant record.

Pure CRUD plus mutation primitives. It knows nothing about who is watching:
after each successful mutation it calls the ``on_change(session_id)`` hook
it was built with, and the service wires that hook to the notifier.

Records never leave the repository by reference. ``create``, ``get`` and
``join`` hand out deep copies, so the only way to change a session is
through a method here (which always fires the hook).
"""

from __future__ import annotations

import random
import uuid
from typing import Callable

from duet.config import settings
from duet.errors import SessionIdCollisionError
from duet.models.session import HOST_COLOR, PARTICIPANT_COLORS, Participant, Session
from duet.utils import get_logger

logger = get_logger("sessions.repository")

# How many fresh ids to try before giving up on a colliding id factory
MAX_ID_ATTEMPTS = 16

WELCOME_TEMPLATES: dict[str, str] = {
    "python": (
        "# Welcome to the interview!\n"
        "# Start coding here...\n"
        "\n"
        "def solution():\n"
        "    # Your code here\n"
        "    pass\n"
    ),
    "javascript": (
        "// Welcome to the interview!\n"
        "// Start coding here...\n"
        "\n"
        "function solution() {\n"
        "  // Your code here\n"
        "}\n"
    ),
}


def default_session_id() -> str:
    return uuid.uuid4().hex[: settings.session_id_length]


def welcome_template(language: str) -> str:
    """Starter buffer for ``language`` (empty when there is none)."""
    return WELCOME_TEMPLATES.get(language, "")


class SessionRepository:
    """In-memory session store.

    Args:
        on_change:   Called with the session id after every successful mutation.
        id_factory:  Produces candidate session ids (default: short uuid4 hex).
        rng:         Random source for participant colours.
        default_language: Language for new sessions (default: settings).
    """

    def __init__(
        self,
        on_change: Callable[[str], None] | None = None,
        *,
        id_factory: Callable[[], str] = default_session_id,
        rng: random.Random | None = None,
        default_language: str | None = None,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._on_change = on_change
        self._id_factory = id_factory
        self._rng = rng or random.Random()
        self._default_language = default_language or settings.default_language

    def set_change_hook(self, on_change: Callable[[str], None] | None) -> None:
        self._on_change = on_change

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, session_id: str) -> Session | None:
        """Pure lookup. Returns a snapshot or None."""
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ── Mutations ─────────────────────────────────────────────────────────────

    def create(self, title: str, host_name: str) -> Session:
        """Allocate a session with its host participant and store it."""
        session_id = self._allocate_id()
        language = self._default_language
        session = Session(
            id=session_id,
            title=title,
            code=welcome_template(language),
            language=language,
            participants=[Participant(name=host_name, color=HOST_COLOR, is_host=True)],
        )
        self._sessions[session_id] = session
        logger.info("session_created", session_id=session_id, language=language)
        return session.model_copy(deep=True)

    def join(self, session_id: str, name: str) -> Participant | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None

        participant = Participant(name=name, color=self._rng.choice(PARTICIPANT_COLORS))
        session.participants.append(participant)
        logger.info(
            "participant_joined",
            session_id=session_id,
            participant_id=participant.id,
            participants=len(session.participants),
        )
        self._changed(session_id)
        return participant.model_copy(deep=True)

    def leave(self, session_id: str, participant_id: str) -> bool:
        """Remove a participant.

        Returns False only when the session does not exist. Removing someone
        who is already gone is a no-op that still notifies and returns True.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return False

        before = len(session.participants)
        session.participants = [p for p in session.participants if p.id != participant_id]
        logger.info(
            "participant_left",
            session_id=session_id,
            participant_id=participant_id,
            removed=before != len(session.participants),
        )
        self._changed(session_id)
        return True

    def update_code(self, session_id: str, code: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.code = code
        self._changed(session_id)
        return True

    def update_language(self, session_id: str, language: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.language = language
        logger.info("language_changed", session_id=session_id, language=language)
        self._changed(session_id)
        return True

    def clear(self) -> None:
        """Drop every session. Teardown only; sessions are never deleted at runtime."""
        self._sessions.clear()

    # ── Internals ─────────────────────────────────────────────────────────────

    def _allocate_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in self._sessions:
                return candidate
            logger.warning("session_id_collision", session_id=candidate)
        raise SessionIdCollisionError(
            f"Could not allocate an unused session id after {MAX_ID_ATTEMPTS} attempts"
        )

    def _changed(self, session_id: str) -> None:
        if self._on_change is not None:
            self._on_change(session_id)
