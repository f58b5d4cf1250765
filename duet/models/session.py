"""Session and Participant — the records behind one collaborative room.

Attribute names are snake_case; ``model_dump(by_alias=True)`` gives the
camelCase wire names (``createdAt``, ``isHost``, ``joinedAt``) so a future
transport can ship snapshots unchanged.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from duet.utils.clock import now_utc

# Fixed accent palette. The host always gets the first entry.
PARTICIPANT_COLORS: tuple[str, ...] = (
    "#22d3ee", "#a78bfa", "#f472b6", "#4ade80",
    "#fbbf24", "#f87171", "#60a5fa", "#34d399",
)
HOST_COLOR = PARTICIPANT_COLORS[0]


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Participant(_Record):
    """One user attached to a Session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(description="Display name supplied by the user")
    color: str = Field(default=HOST_COLOR, description="Presentation accent, not identity")
    is_host: bool = Field(default=False, description="True only for the session creator")
    joined_at: datetime = Field(default_factory=now_utc)


class Session(_Record):
    """One collaborative room: a shared buffer, a language, and who is in it.

    ``code`` and ``language`` are last-write-wins. ``participants`` keeps
    join order. A session with no participants is still a valid session.
    """

    id: str = Field(description="Short unique token, the sole lookup key")
    created_at: datetime = Field(default_factory=now_utc)
    title: str
    code: str = ""
    language: str
    participants: list[Participant] = Field(default_factory=list)

    @property
    def host(self) -> Participant | None:
        for participant in self.participants:
            if participant.is_host:
                return participant
        return None

    def participant(self, participant_id: str) -> Participant | None:
        """Return the participant with ``participant_id``, or None."""
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None
