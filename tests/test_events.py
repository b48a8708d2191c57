# tests/test_events.py
from wallgraph.events import EventBus, EventKind


def test_delivery_in_emission_order():
    bus = EventBus()
    seen = []
    bus.subscribe(lambda e: seen.append((e.kind, e.entity_id)))
    bus.publish(EventKind.NODE_CREATED, "n1")
    bus.publish(EventKind.SEGMENT_CREATED, "s1")
    assert seen == [(EventKind.NODE_CREATED, "n1"), (EventKind.SEGMENT_CREATED, "s1")]


def test_sequence_numbers_increase():
    bus = EventBus()
    e1 = bus.publish(EventKind.NODE_CREATED, "n1")
    e2 = bus.publish(EventKind.NODE_CREATED, "n2")
    assert e2.sequence == e1.sequence + 1


def test_kind_filter():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append, kinds=[EventKind.MERGE_CREATED])
    bus.publish(EventKind.NODE_CREATED, "n1")
    bus.publish(EventKind.MERGE_CREATED, "m1")
    assert [e.entity_id for e in seen] == ["m1"]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    bus.publish(EventKind.NODE_CREATED, "n1")
    unsubscribe()
    bus.publish(EventKind.NODE_CREATED, "n2")
    assert len(seen) == 1


def test_same_callback_subscribed_twice_is_delivered_twice():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    bus.subscribe(seen.append)
    bus.publish(EventKind.WALL_CREATED, "w1")
    assert len(seen) == 2


def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    bus.publish(EventKind.WALL_REMOVED, "w1")
    assert [e.entity_id for e in seen] == ["w1"]


def test_history_is_bounded():
    bus = EventBus(history_size=3)
    for i in range(5):
        bus.publish(EventKind.NODE_CREATED, f"n{i}")
    assert [e.entity_id for e in bus.history] == ["n2", "n3", "n4"]
    bus.clear_history()
    assert len(bus.history) == 0
