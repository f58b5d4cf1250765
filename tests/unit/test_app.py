"""DuetApp tests — the combined surface, background preload, teardown."""

from __future__ import annotations

import asyncio

import pytest

from duet.app import DuetApp
from duet.models.execution import ExecutionErrorKind


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_full_room_flow(app):
    session = await app.create_session("Interview", "Host")
    seen = []
    unsubscribe = app.subscribe(session.id, seen.append)

    guest = await app.join_session(session.id, "Guest")
    await app.update_code(session.id, "print('shared')\n2 + 2")
    current = await app.get_session(session.id)
    result = await app.execute(current.code, current.language)

    assert result.output == "shared\n→ 4"
    assert await app.leave_session(session.id, guest.id) is True
    assert len(seen) == 3

    unsubscribe()
    await app.update_code(session.id, "")
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_switching_to_hosted_language_preloads(app, counting_factory):
    session = await app.create_session("Interview", "Host")
    assert app.runtime_hint("javascript") is not None

    assert await app.update_language(session.id, "JavaScript") is True
    await _settle()

    assert app.is_runtime_ready()
    assert counting_factory.calls == 1
    assert app.runtime_hint("javascript") is None

    await app.execute("1", "javascript")
    assert counting_factory.calls == 1


@pytest.mark.asyncio
async def test_switching_to_python_does_not_preload(app, counting_factory):
    session = await app.create_session("Interview", "Host")
    await app.update_language(session.id, "cython")
    await _settle()

    assert counting_factory.calls == 0
    assert not app.is_runtime_loading()


@pytest.mark.asyncio
async def test_unknown_session_language_switch_does_not_preload(app, counting_factory):
    assert await app.update_language("missing", "javascript") is False
    await _settle()
    assert counting_factory.calls == 0


@pytest.mark.asyncio
async def test_background_preload_failure_is_logged_not_raised(make_dispatcher, make_factory, bus):
    factory = make_factory(fail_times=1)
    app = DuetApp(dispatcher=make_dispatcher(factory), bus=bus)
    session = await app.create_session("Interview", "Host")

    await app.update_language(session.id, "javascript")
    await _settle()

    assert not app.is_runtime_ready()
    assert not app.is_runtime_loading()
    assert len(bus.events("runtime_load_failed")) == 1

    result = await app.execute("1", "javascript")
    assert result.ok
    assert factory.calls == 2


@pytest.mark.asyncio
async def test_unsupported_language_can_be_selected_but_not_run(app):
    session = await app.create_session("Interview", "Host")
    assert await app.update_language(session.id, "rust") is True

    current = await app.get_session(session.id)
    result = await app.execute(current.code, current.language)
    assert result.error_kind is ExecutionErrorKind.UNSUPPORTED_LANGUAGE


def test_runtime_hint_only_for_hosted_language(app):
    assert app.runtime_hint("python") is None
    assert app.runtime_hint("go") is None
    assert app.runtime_hint("javascript") == (
        "Loading JavaScript runtime (first run may take a few seconds)..."
    )


def test_supported_languages_lists_the_picker():
    ids = [spec.id for spec in DuetApp.supported_languages()]
    assert ids[:3] == ["python", "cython", "javascript"]
    assert "typescript" in ids


@pytest.mark.asyncio
async def test_close_cancels_pending_preload(make_dispatcher, make_factory):
    factory = make_factory(delay=1.0)
    app = DuetApp(dispatcher=make_dispatcher(factory))
    session = await app.create_session("Interview", "Host")

    await app.update_language(session.id, "javascript")
    await asyncio.sleep(0.01)
    assert app.is_runtime_loading()

    await app.close()

    assert not app.is_runtime_loading()
    assert await app.get_session(session.id) is None


@pytest.mark.asyncio
async def test_apps_are_independent(make_dispatcher):
    first = DuetApp(dispatcher=make_dispatcher())
    second = DuetApp(dispatcher=make_dispatcher())
    session = await first.create_session("Interview", "Host")
    assert await second.get_session(session.id) is None


@pytest.mark.asyncio
async def test_room_activity_during_a_run_stays_out_of_its_output(app):
    session = await app.create_session("Interview", "Host")
    run = asyncio.ensure_future(app.execute("import time\ntime.sleep(0.3)\nprint('done')", "python"))
    await asyncio.sleep(0.05)

    guest = await app.join_session(session.id, "Guest")
    await app.update_code(session.id, "print('edited')")
    result = await run

    assert result.output == "done"
    assert "participant_joined" not in result.output
    assert guest.id not in result.output
