"""Tests for the presence registry."""

from concurrent.futures import ThreadPoolExecutor

from chatline.realtime.presence import PresenceRegistry


def test_last_connection_wins() -> None:
    registry = PresenceRegistry()
    first, second = object(), object()

    registry.register("alice", first)
    registry.register("alice", second)

    assert registry.connection_for("alice") is second
    assert registry.snapshot() == frozenset({"alice"})
    assert len(registry) == 1


def test_stale_removal_keeps_newer_connection() -> None:
    registry = PresenceRegistry()
    stale, fresh = object(), object()
    registry.register("alice", stale)
    registry.register("alice", fresh)

    assert registry.remove_if_current("alice", stale) is False
    assert "alice" in registry
    assert registry.remove_if_current("alice", fresh) is True
    assert "alice" not in registry


def test_remove_unknown_identity_is_noop() -> None:
    assert PresenceRegistry().remove_if_current("ghost", object()) is False


def test_identity_for_reverse_lookup() -> None:
    registry = PresenceRegistry()
    conn = object()
    registry.register("bob", conn)

    assert registry.identity_for(conn) == "bob"
    assert registry.identity_for(object()) is None


def test_snapshot_is_a_copy() -> None:
    registry = PresenceRegistry()
    registry.register("alice", object())
    snapshot = registry.snapshot()

    registry.register("bob", object())

    assert snapshot == frozenset({"alice"})


def test_concurrent_registration() -> None:
    registry = PresenceRegistry()
    ids = [f"user-{n}" for n in range(200)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda identity: registry.register(identity, object()), ids))

    assert registry.snapshot() == frozenset(ids)
