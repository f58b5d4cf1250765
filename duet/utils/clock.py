"""Centralised wall-clock helpers — single source of truth for 'now'.

Session and participant timestamps, diagnostic events and execution timing
all read the clock through here, so tests can patch one function.

Usage:
    from duet.utils.clock import now_utc, elapsed_ms
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def monotonic() -> float:
    """Monotonic seconds, for measuring durations."""
    return time.perf_counter()


def elapsed_ms(start: float) -> float:
    """Milliseconds since ``start`` (a value from ``monotonic()``), rounded to 0.01."""
    return round((time.perf_counter() - start) * 1000, 2)
