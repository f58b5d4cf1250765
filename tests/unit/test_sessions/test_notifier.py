"""ChangeNotifier tests — registration, fan-out, and observer isolation."""

from __future__ import annotations

from duet.sessions.notifier import ChangeNotifier


def _notifier_over(repository, bus=None) -> ChangeNotifier:
    notifier = ChangeNotifier(repository.get, bus=bus)
    repository.set_change_hook(notifier.notify)
    return notifier


def test_every_observer_gets_the_snapshot_once(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    seen_a, seen_b = [], []
    notifier.subscribe(session.id, seen_a.append)
    notifier.subscribe(session.id, seen_b.append)

    repository.update_code(session.id, "x = 1")

    assert len(seen_a) == 1
    assert len(seen_b) == 1
    assert seen_a[0].code == "x = 1"
    assert seen_b[0].code == "x = 1"


def test_observers_only_hear_their_own_session(repository):
    notifier = _notifier_over(repository)
    first = repository.create("one", "Ada")
    second = repository.create("two", "Grace")
    seen = []
    notifier.subscribe(first.id, seen.append)

    repository.update_code(second.id, "elsewhere")

    assert seen == []


def test_unsubscribe_stops_delivery(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    seen = []
    unsubscribe = notifier.subscribe(session.id, seen.append)

    repository.update_code(session.id, "a")
    unsubscribe()
    repository.update_code(session.id, "b")

    assert [s.code for s in seen] == ["a"]
    assert notifier.observer_count(session.id) == 0


def test_unsubscribe_twice_is_harmless(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    unsubscribe = notifier.subscribe(session.id, lambda s: None)

    unsubscribe()
    unsubscribe()

    assert notifier.observer_count(session.id) == 0


def test_same_callback_twice_is_two_registrations(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    seen = []
    first = notifier.subscribe(session.id, seen.append)
    notifier.subscribe(session.id, seen.append)

    repository.update_code(session.id, "a")
    assert len(seen) == 2

    first()
    repository.update_code(session.id, "b")
    assert len(seen) == 3
    assert notifier.observer_count(session.id) == 1


def test_subscribing_to_unknown_session_is_allowed(repository):
    notifier = _notifier_over(repository)
    seen = []
    unsubscribe = notifier.subscribe("not-yet", seen.append)

    assert notifier.notify("not-yet") == 0
    assert seen == []
    unsubscribe()


def test_raising_observer_does_not_block_the_rest(repository, bus):
    notifier = _notifier_over(repository, bus=bus)
    session = repository.create("Pairing", "Ada")
    seen = []

    def broken(snapshot):
        raise RuntimeError("observer exploded")

    notifier.subscribe(session.id, broken)
    notifier.subscribe(session.id, seen.append)

    assert repository.update_code(session.id, "still fine") is True
    assert [s.code for s in seen] == ["still fine"]

    errors = bus.events("observer_error")
    assert len(errors) == 1
    assert errors[0].session_id == session.id
    assert "observer exploded" in errors[0].error


def test_notify_returns_delivered_count(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    notifier.subscribe(session.id, lambda s: None)
    notifier.subscribe(session.id, lambda s: None)

    assert notifier.notify(session.id) == 2


def test_observer_may_unsubscribe_during_delivery(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    seen = []
    handles = {}

    def once(snapshot):
        seen.append(snapshot.code)
        handles["once"]()

    handles["once"] = notifier.subscribe(session.id, once)
    notifier.subscribe(session.id, lambda s: seen.append("other"))

    repository.update_code(session.id, "a")
    repository.update_code(session.id, "b")

    assert seen.count("a") == 1
    assert "b" not in seen
    assert seen.count("other") == 2


def test_observers_receive_independent_snapshots(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")

    def vandal(snapshot):
        snapshot.code = "vandalised"

    seen = []
    notifier.subscribe(session.id, vandal)
    notifier.subscribe(session.id, lambda snapshot: seen.append(snapshot.code))
    repository.update_code(session.id, "original")

    assert seen == ["original"]
    assert repository.get(session.id).code == "original"


def test_clear_drops_every_registration(repository):
    notifier = _notifier_over(repository)
    session = repository.create("Pairing", "Ada")
    notifier.subscribe(session.id, lambda s: None)

    notifier.clear()

    assert notifier.observer_count(session.id) == 0
    assert notifier.notify(session.id) == 0
