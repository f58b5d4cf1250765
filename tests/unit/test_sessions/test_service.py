"""SessionService tests — validation, absence as data, and the change stream.

Run with:
    python -m pytest tests/unit/test_sessions/test_service.py -v
"""

from __future__ import annotations

import pytest

from duet.errors import SessionValidationError
from duet.sessions.service import SessionService


# ── Validation ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_trims_title_and_host_name(service):
    session = await service.create_session("  Pairing  ", "  Ada ")
    assert session.title == "Pairing"
    assert session.participants[0].name == "Ada"


@pytest.mark.asyncio
@pytest.mark.parametrize("title,host", [("", "Ada"), ("   ", "Ada"), ("Pairing", ""), ("Pairing", "\t\n")])
async def test_create_rejects_blank_fields(service, title, host):
    with pytest.raises(SessionValidationError):
        await service.create_session(title, host)
    assert len(service.repository) == 0


@pytest.mark.asyncio
async def test_create_rejects_non_string(service):
    with pytest.raises(SessionValidationError):
        await service.create_session(None, "Ada")


@pytest.mark.asyncio
async def test_validation_error_is_a_value_error(service):
    with pytest.raises(ValueError):
        await service.create_session("", "Ada")


@pytest.mark.asyncio
async def test_join_rejects_blank_name_without_notifying(service):
    session = await service.create_session("Pairing", "Ada")
    seen = []
    service.subscribe(session.id, seen.append)

    with pytest.raises(SessionValidationError):
        await service.join_session(session.id, "   ")

    assert seen == []
    assert len((await service.get_session(session.id)).participants) == 1


@pytest.mark.asyncio
async def test_join_trims_name(service):
    session = await service.create_session("Pairing", "Ada")
    guest = await service.join_session(session.id, "  Bob  ")
    assert guest.name == "Bob"


def test_subscribe_rejects_non_callable(service):
    with pytest.raises(SessionValidationError):
        service.subscribe("anything", "not a function")


@pytest.mark.asyncio
async def test_update_code_keeps_whitespace(service):
    session = await service.create_session("Pairing", "Ada")
    assert await service.update_code(session.id, "   ") is True
    assert (await service.get_session(session.id)).code == "   "


@pytest.mark.asyncio
async def test_update_code_rejects_non_string(service):
    session = await service.create_session("Pairing", "Ada")
    with pytest.raises(SessionValidationError):
        await service.update_code(session.id, 42)


# ── Absence is data ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unknown_session_sentinels(service):
    assert await service.get_session("missing") is None
    assert await service.join_session("missing", "Bob") is None
    assert await service.leave_session("missing", "p") is False
    assert await service.update_code("missing", "x") is False
    assert await service.update_language("missing", "python") is False


# ── Change stream ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_observer_sees_every_mutation_in_order(service):
    session = await service.create_session("Pairing", "Ada")
    seen = []
    service.subscribe(session.id, seen.append)

    guest = await service.join_session(session.id, "Bob")
    await service.update_code(session.id, "print('hi')")
    await service.update_language(session.id, "javascript")
    await service.leave_session(session.id, guest.id)

    assert len(seen) == 4
    assert [p.name for p in seen[0].participants] == ["Ada", "Bob"]
    assert seen[1].code == "print('hi')"
    assert seen[2].language == "javascript"
    assert [p.name for p in seen[3].participants] == ["Ada"]
    # Each delivery reflects the state right after its own mutation.
    assert seen[0].code != "print('hi')"


@pytest.mark.asyncio
async def test_create_is_not_a_change(service):
    seen = []
    service.subscribe("s0001", seen.append)
    session = await service.create_session("Pairing", "Ada")
    assert session.id == "s0001"
    assert seen == []


@pytest.mark.asyncio
async def test_mutation_reports_success_when_observer_raises(service, bus):
    session = await service.create_session("Pairing", "Ada")

    def broken(snapshot):
        raise KeyError("boom")

    service.subscribe(session.id, broken)
    assert await service.update_code(session.id, "x") is True
    assert (await service.get_session(session.id)).code == "x"
    assert len(bus.events("observer_error", session_id=session.id)) == 1


@pytest.mark.asyncio
async def test_two_editors_last_write_wins(service):
    session = await service.create_session("Pairing", "Ada")
    await service.join_session(session.id, "Bob")

    await service.update_code(session.id, "from Ada")
    await service.update_code(session.id, "from Bob")

    assert (await service.get_session(session.id)).code == "from Bob"


# ── Lifecycle ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_instances_do_not_share_state():
    first = SessionService()
    second = SessionService()
    session = await first.create_session("Pairing", "Ada")

    assert await second.get_session(session.id) is None


@pytest.mark.asyncio
async def test_close_drops_sessions_and_observers(service):
    session = await service.create_session("Pairing", "Ada")
    service.subscribe(session.id, lambda s: None)

    service.close()

    assert await service.get_session(session.id) is None
    assert service.notifier.observer_count(session.id) == 0
