"""Duet sessions — shared rooms and their change fan-out.

Public surface
--------------
``SessionRepository``  — owns session/participant records
``ChangeNotifier``     — per-session observer registry
``SessionService``     — async operations consumed by the UI layer
"""

from .notifier import ChangeNotifier
from .repository import SessionRepository
from .service import SessionService

__all__ = [
    "ChangeNotifier",
    "SessionRepository",
    "SessionService",
]
