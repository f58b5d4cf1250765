"""Exception hierarchy for Duet.

Expected absence (unknown session, unknown participant) is never an
exception; it comes back as ``None`` / ``False``. Execution failures are
never exceptions either; they come back inside ``ExecutionResult``.
What remains here is programmer error and internal plumbing.
"""

from __future__ import annotations


class DuetError(Exception):
    """Base class for every Duet exception."""


class SessionValidationError(DuetError, ValueError):
    """A caller passed a blank or wrongly typed required field."""


class SessionIdCollisionError(DuetError):
    """The id factory kept returning ids that are already in use."""


class RuntimeLoadError(DuetError):
    """A hosted interpreter failed to initialise.

    Raised by ``RuntimeLoader.load()`` to every waiter of the failed load.
    The loader is back in the unloaded state by the time this is raised.
    """

    def __init__(self, runtime: str, message: str) -> None:
        super().__init__(f"Failed to load {runtime} runtime: {message}")
        self.runtime = runtime
        self.reason = message
