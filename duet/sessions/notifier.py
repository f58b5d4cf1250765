"""ChangeNotifier — per-session observer registry with synchronous fan-out.

This stands in for a real publish/subscribe transport. Every observer of a
session gets the full post-mutation snapshot, once, before the mutating
call returns. Delivery order between observers is unspecified.
"""

from __future__ import annotations

import itertools
from typing import Callable

from duet.models.events import DiagnosticEvent, EventBus
from duet.models.session import Session
from duet.utils import get_logger

logger = get_logger("sessions.notifier")

Observer = Callable[[Session], None]
Unsubscribe = Callable[[], None]


class ChangeNotifier:
    """Maps session ids to observers and fans snapshots out to them.

    Args:
        lookup:  Returns the current snapshot for a session id, or None.
        bus:     Diagnostics channel for observer failures (optional).
    """

    def __init__(
        self,
        lookup: Callable[[str], Session | None],
        bus: EventBus | None = None,
    ) -> None:
        self._lookup = lookup
        self._bus = bus
        # session_id → {registration token → observer}
        self._observers: dict[str, dict[int, Observer]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, session_id: str, callback: Observer) -> Unsubscribe:
        """Register ``callback``. The returned function removes exactly this registration."""
        token = next(self._tokens)
        self._observers.setdefault(session_id, {})[token] = callback

        def unsubscribe() -> None:
            observers = self._observers.get(session_id)
            if observers is None:
                return
            observers.pop(token, None)
            if not observers:
                del self._observers[session_id]

        return unsubscribe

    def notify(self, session_id: str) -> int:
        """Deliver the current snapshot to every observer of ``session_id``.

        Each observer gets its own copy. Returns the number of observers that
        received it without raising.
        """
        observers = self._observers.get(session_id)
        if not observers:
            return 0
        snapshot = self._lookup(session_id)
        if snapshot is None:
            return 0

        delivered = 0
        # Copy: observers may unsubscribe while we iterate.
        for token, callback in list(observers.items()):
            try:
                callback(snapshot.model_copy(deep=True))
                delivered += 1
            except Exception as e:
                logger.error(
                    "observer_failed",
                    session_id=session_id,
                    token=token,
                    error=str(e),
                )
                if self._bus is not None:
                    self._bus.emit(DiagnosticEvent(
                        event_type="observer_error",
                        source="sessions.notifier",
                        session_id=session_id,
                        error=f"{type(e).__name__}: {e}",
                        payload={"token": token},
                    ))
        return delivered

    def observer_count(self, session_id: str) -> int:
        return len(self._observers.get(session_id, {}))

    def clear(self) -> None:
        self._observers.clear()
