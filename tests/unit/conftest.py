"""Unit-test conftest — fake runtimes, shared fixtures, and factory fixtures.

All fixtures here are available to every test under tests/unit/ without import.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import random
from typing import Any

import pytest

from duet.app import DuetApp
from duet.execution.dispatcher import ExecutionDispatcher
from duet.execution.loader import RuntimeLoader
from duet.models.events import EventBus
from duet.sessions.repository import SessionRepository
from duet.sessions.service import SessionService


# ─────────────────────────────────────────────────────────────────────────────
# Fake hosted runtime
# ─────────────────────────────────────────────────────────────────────────────

class CountingFactory:
    """Stand-in runtime factory for RuntimeLoader tests.

    Args:
        delay:      Seconds to sleep before returning (keeps the loader in LOADING).
        fail_times: Number of initial calls that raise RuntimeError.
        handle:     Object returned on success (default: a fresh FakeContext).
    """

    def __init__(self, *, delay: float = 0.0, fail_times: int = 0, handle: Any = None) -> None:
        self.delay = delay
        self.fail_times = fail_times
        self.handle = handle
        # Call counter for assertion
        self.calls: int = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise RuntimeError("runtime download failed")
        return self.handle if self.handle is not None else FakeContext()


class FakeContext:
    """MiniRacer look-alike whose ``eval`` returns a canned ``__duetRun`` reply.

    Args:
        response:  Dict serialised as the JSON reply (default: no output).
        raises:    If set, ``eval`` raises this instead.
        reply:     If set, returned from ``eval`` as is, bypassing ``response``.
    """

    def __init__(
        self,
        response: dict | None = None,
        raises: Exception | None = None,
        reply: Any = None,
    ) -> None:
        self.response = response or {"out": []}
        self.raises = raises
        self.reply = reply
        self.scripts: list[str] = []
        self.kwargs: list[dict] = []

    def eval(self, script: str, **kwargs: Any) -> str:
        self.scripts.append(script)
        self.kwargs.append(kwargs)
        if self.raises:
            raise self.raises
        if self.reply is not None:
            return self.reply
        return json.dumps(self.response)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def sequential_ids(prefix: str = "s"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter):04d}"


def build_repository(**kwargs: Any) -> SessionRepository:
    kwargs.setdefault("id_factory", sequential_ids())
    kwargs.setdefault("rng", random.Random(7))
    kwargs.setdefault("default_language", "python")
    return SessionRepository(**kwargs)


def build_dispatcher(
    factory: Any = None,
    timeout_ms: int = 2000,
    bus: EventBus | None = None,
) -> ExecutionDispatcher:
    loader = RuntimeLoader("JavaScript", factory or CountingFactory(), bus=bus)
    return ExecutionDispatcher(timeout_ms=timeout_ms, loader=loader, bus=bus)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def bus():
    """A fresh in-memory EventBus for each test."""
    return EventBus()


@pytest.fixture
def make_repository():
    """Factory: deterministic SessionRepository (sequential ids, seeded colours)."""
    return build_repository


@pytest.fixture
def repository():
    return build_repository()


@pytest.fixture
def service(bus):
    """A SessionService over a deterministic repository."""
    return SessionService(build_repository(), bus=bus)


@pytest.fixture
def counting_factory():
    """A CountingFactory returning a FakeContext instantly."""
    return CountingFactory()


@pytest.fixture
def make_factory():
    """Factory: CountingFactory(delay=..., fail_times=..., handle=...)."""
    return CountingFactory


@pytest.fixture
def make_context():
    """Factory: FakeContext(response=..., raises=..., reply=...)."""
    return FakeContext


@pytest.fixture
def make_dispatcher(bus):
    """Factory: ExecutionDispatcher over a fake hosted runtime, sharing ``bus``."""
    def _make(factory: Any = None, timeout_ms: int = 2000) -> ExecutionDispatcher:
        return build_dispatcher(factory, timeout_ms=timeout_ms, bus=bus)
    return _make


@pytest.fixture
def dispatcher(counting_factory, bus):
    """Dispatcher with a 2 s budget and a fake hosted runtime."""
    return build_dispatcher(counting_factory, bus=bus)


@pytest.fixture
def app(counting_factory, bus):
    """DuetApp wired to deterministic sessions and a fake hosted runtime."""
    return DuetApp(
        sessions=SessionService(build_repository(), bus=bus),
        dispatcher=build_dispatcher(counting_factory, bus=bus),
        bus=bus,
    )
