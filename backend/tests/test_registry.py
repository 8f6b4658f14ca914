import threading

from flow.services.registry import RoomRegistry


def test_ensure_returns_same_entry():
    registry = RoomRegistry()

    first = registry.ensure("r1")
    second = registry.ensure("r1")

    assert first is second
    assert first.connection_count == 0
    assert first.subscribers == {}
    assert registry.get("r1") is first


def test_get_does_not_create():
    registry = RoomRegistry()

    assert registry.get("missing") is None
    assert "missing" not in registry
    assert len(registry) == 0


def test_concurrent_ensure_converges_to_one_entry():
    registry = RoomRegistry()
    seen = []
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        seen.append(registry.ensure("shared"))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(entry) for entry in seen}) == 1
    assert registry.room_ids() == ["shared"]


def test_remove_skips_rooms_with_connections():
    registry = RoomRegistry()
    entry = registry.ensure("r1")
    entry.connection_count = 1

    assert registry.remove("r1") is False
    assert "r1" in registry

    entry.connection_count = 0
    assert registry.remove("r1") is True
    assert "r1" not in registry
    assert entry.retired


def test_remove_unknown_room_is_noop():
    registry = RoomRegistry()

    assert registry.remove("nope") is False


def test_room_ids_are_arbitrary_strings():
    registry = RoomRegistry()
    for room_id in ["", "   ", "ルーム", "a/b?c"]:
        registry.ensure(room_id)

    assert sorted(registry) == sorted(["", "   ", "ルーム", "a/b?c"])
