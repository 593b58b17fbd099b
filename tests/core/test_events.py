"""Tests for event bus."""

from posechannels.core.events import EventBus, EventType


def test_subscribe_publish():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.RECORDING_STARTED, lambda **kw: received.append(kw))
    bus.publish(EventType.RECORDING_STARTED, channel_count=130)
    assert len(received) == 1
    assert received[0] == {"channel_count": 130}


def test_unsubscribe():
    bus = EventBus()
    received = []
    handler = lambda **kw: received.append(kw)
    bus.subscribe(EventType.FRAME_SAMPLED, handler)
    bus.unsubscribe(EventType.FRAME_SAMPLED, handler)
    bus.publish(EventType.FRAME_SAMPLED, frame=0)
    assert len(received) == 0


def test_multiple_subscribers():
    bus = EventBus()
    a, b = [], []
    bus.subscribe(EventType.RECORDING_STOPPED, lambda **kw: a.append(1))
    bus.subscribe(EventType.RECORDING_STOPPED, lambda **kw: b.append(1))
    bus.publish(EventType.RECORDING_STOPPED, frame_count=3, duration=0.1)
    assert len(a) == 1
    assert len(b) == 1


def test_different_events_independent():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.RECORDING_STARTED, lambda **kw: received.append("start"))
    bus.publish(EventType.RECORDING_STOPPED)
    assert len(received) == 0


def test_clear():
    bus = EventBus()
    bus.subscribe(EventType.RECORDING_RESET, lambda **kw: None)
    bus.clear()
    # Should not raise
    bus.publish(EventType.RECORDING_RESET)
