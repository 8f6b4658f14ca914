import threading
from datetime import datetime, timezone

import pytest

from flow.schemas.events import EventAuthor, EventMessage, MessageCreatedEvent, PresenceEvent
from flow.services.bus import RoomEventBus
from flow.services.registry import RoomRegistry


class Recorder:
    def __init__(self) -> None:
        self.events = []

    def deliver(self, event) -> None:
        self.events.append(event)

    def presence(self) -> list[int]:
        return [e.connections for e in self.events if isinstance(e, PresenceEvent)]


def make_message(room_id: str, content: str) -> MessageCreatedEvent:
    return MessageCreatedEvent(
        room_id=room_id,
        message=EventMessage(
            id=f"m-{content}",
            content=content,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            author=EventAuthor(id="u1", name="Mina"),
        ),
    )


@pytest.fixture
def bus():
    return RoomEventBus()


def test_room_walkthrough(bus):
    a, b = Recorder(), Recorder()

    unsubscribe_a = bus.subscribe("r1", a)
    assert bus.connection_count("r1") == 1
    assert a.events == [PresenceEvent(room_id="r1", connections=1)]

    unsubscribe_b = bus.subscribe("r1", b)
    assert a.presence() == [1, 2]
    assert b.presence() == [2]

    hi = make_message("r1", "hi")
    assert bus.publish("r1", hi) == 2
    assert a.events[-1] == hi
    assert b.events[-1] == hi

    unsubscribe_a()
    a_seen = len(a.events)
    assert b.events[-1] == PresenceEvent(room_id="r1", connections=1)

    unsubscribe_b()
    assert bus.connection_count("r1") == 0
    assert bus.registry.get("r1") is None
    assert len(a.events) == a_seen
    assert bus.publish("r1", make_message("r1", "late")) == 0


@pytest.mark.parametrize("subscribes,unsubscribes", [(1, 0), (3, 1), (5, 4), (10, 7)])
def test_presence_count_is_subscribes_minus_unsubscribes(bus, subscribes, unsubscribes):
    recorders = [Recorder() for _ in range(subscribes)]
    handles = [bus.subscribe("room", r) for r in recorders]

    for handle in handles[:unsubscribes]:
        handle()

    expected = subscribes - unsubscribes
    assert bus.connection_count("room") == expected
    for recorder in recorders[unsubscribes:]:
        assert recorder.presence()[-1] == expected


def test_room_is_recreated_fresh_after_teardown(bus):
    handle = bus.subscribe("r1", Recorder())
    old_entry = bus.registry.get("r1")
    handle()

    assert bus.registry.get("r1") is None

    recorder = Recorder()
    bus.subscribe("r1", recorder)
    new_entry = bus.registry.get("r1")
    assert new_entry is not old_entry
    assert new_entry.connection_count == 1
    assert recorder.presence() == [1]


def test_publish_reaches_only_current_subscribers(bus):
    early = Recorder()
    bus.subscribe("r1", early)
    event = make_message("r1", "first")

    bus.publish("r1", event)
    late = Recorder()
    bus.subscribe("r1", late)

    assert early.events.count(event) == 1
    assert event not in late.events


def test_publish_to_empty_room_is_silent(bus):
    assert bus.publish("nobody-home", make_message("nobody-home", "x")) == 0
    assert "nobody-home" not in bus.registry


def test_sequential_publishes_keep_order(bus):
    recorder = Recorder()
    bus.subscribe("r1", recorder)
    sent = [make_message("r1", str(i)) for i in range(20)]

    for event in sent:
        bus.publish("r1", event)

    received = [e for e in recorder.events if isinstance(e, MessageCreatedEvent)]
    assert received == sent


def test_unsubscribe_twice_is_noop(bus):
    leaving, staying = Recorder(), Recorder()
    handle = bus.subscribe("r1", leaving)
    bus.subscribe("r1", staying)

    handle()
    after_first = list(staying.events)
    handle()
    handle.close()

    assert staying.events == after_first
    assert bus.connection_count("r1") == 1
    assert not handle.active


def test_rooms_are_isolated(bus):
    in_a, in_b = Recorder(), Recorder()
    bus.subscribe("A", in_a)
    bus.subscribe("B", in_b)

    bus.publish("A", make_message("A", "only-a"))

    assert all(getattr(e, "room_id", "B") == "B" for e in in_b.events)
    assert in_a.events[-1].message.content == "only-a"


def test_plain_callables_are_accepted(bus):
    seen = []
    handle = bus.subscribe("r1", seen.append)
    bus.publish("r1", make_message("r1", "cb"))
    handle()

    assert [type(e).__name__ for e in seen] == ["PresenceEvent", "MessageCreatedEvent"]


def test_failing_subscriber_does_not_block_others(bus):
    def broken(event):
        raise OSError("connection reset")

    healthy = Recorder()
    bus.subscribe("r1", broken)
    bus.subscribe("r1", healthy)

    assert bus.publish("r1", make_message("r1", "still")) == 1
    assert healthy.events[-1].message.content == "still"


def test_subscriber_may_unsubscribe_during_fan_out(bus):
    handles = {}
    other = Recorder()

    def leave_on_message(event):
        if isinstance(event, MessageCreatedEvent):
            handles["self"]()

    handles["self"] = bus.subscribe("r1", leave_on_message)
    bus.subscribe("r1", other)

    bus.publish("r1", make_message("r1", "bye"))

    assert bus.connection_count("r1") == 1
    # the departure is fanned out before the message reaches later subscribers
    assert other.events[-2] == PresenceEvent(room_id="r1", connections=1)
    assert other.events[-1].message.content == "bye"


def test_concurrent_subscribes_and_unsubscribes_balance(bus):
    workers = 12
    cycles = 200
    barrier = threading.Barrier(workers)

    def churn(room_id):
        barrier.wait()
        for _ in range(cycles):
            handle = bus.subscribe(room_id, Recorder())
            bus.publish(room_id, make_message(room_id, "x"))
            handle()

    threads = [threading.Thread(target=churn, args=(f"room-{i % 3}",)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(bus.registry) == 0
    for i in range(3):
        assert bus.connection_count(f"room-{i}") == 0


def test_concurrent_subscribes_count_every_connection(bus):
    watcher = Recorder()
    bus.subscribe("r1", watcher)
    barrier = threading.Barrier(10)

    def join():
        barrier.wait()
        bus.subscribe("r1", Recorder())

    threads = [threading.Thread(target=join) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert bus.connection_count("r1") == 11
    assert watcher.presence() == list(range(1, 12))


class SignallingRegistry(RoomRegistry):
    def __init__(self) -> None:
        super().__init__()
        self.ensured = threading.Event()

    def ensure(self, room_id):
        entry = super().ensure(room_id)
        self.ensured.set()
        return entry


def test_subscribe_racing_teardown_lands_in_live_room():
    registry = SignallingRegistry()
    bus = RoomEventBus(registry)
    leaving_handle = bus.subscribe("r1", Recorder())
    old_entry = registry.get("r1")
    registry.ensured.clear()
    late = Recorder()

    with old_entry.lock:
        joiner = threading.Thread(target=bus.subscribe, args=("r1", late))
        joiner.start()
        # the joiner holds the old entry and is waiting for its lock
        assert registry.ensured.wait(timeout=1)
        leaving_handle()
        assert old_entry.retired
        assert registry.get("r1") is None
    joiner.join(timeout=1)

    live = registry.get("r1")
    assert live is not None
    assert live is not old_entry
    assert live.connection_count == 1
    assert old_entry.subscribers == {}
    assert late.presence() == [1]
