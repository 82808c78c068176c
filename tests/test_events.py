"""
Tests for realmguard/services/events.py
"""

import pytest

from realmguard.services.events import EventBus, EventType, RealmEvent


class TestEventBus:
    """Tests for EventBus."""

    def test_emit_reaches_all_subscribers(self):
        bus = EventBus()
        a, b = bus.subscribe(), bus.subscribe()
        bus.emit(EventType.JOIN, "t1", {"player": "Steve"})
        assert [e.type for e in a.drain()] == ["join"]
        assert [e.type for e in b.drain()] == ["join"]

    def test_tenant_filter(self):
        bus = EventBus()
        only_t1 = bus.subscribe("t1")
        bus.emit(EventType.CHAT, "t2", {})
        bus.emit(EventType.CHAT, "t1", {})
        events = only_t1.drain()
        assert len(events) == 1
        assert events[0].tenant_id == "t1"

    def test_full_queue_drops_oldest(self):
        bus = EventBus(queue_size=2)
        sub = bus.subscribe()
        for i in range(3):
            bus.emit(EventType.CHAT, "t1", {"n": i})
        assert [e.data["n"] for e in sub.drain()] == [1, 2]
        assert sub.dropped == 1

    def test_unsubscribe(self):
        bus = EventBus()
        sub = bus.subscribe()
        assert bus.unsubscribe(sub) is True
        assert bus.unsubscribe(sub) is False
        bus.emit(EventType.JOIN, "t1")
        assert sub.drain() == []

    @pytest.mark.asyncio
    async def test_get_awaits_next_event(self):
        bus = EventBus()
        sub = bus.subscribe()
        bus.emit(EventType.DEATH, "t1", {"player": "Alex"})
        event = await sub.get()
        assert isinstance(event, RealmEvent)
        assert event.data == {"player": "Alex"}

    def test_event_serialises(self):
        event = RealmEvent(type=EventType.REALM_CRASHED, tenant_id="t1", data={"reason": "unknown"})
        dumped = event.model_dump(mode="json")
        assert dumped["type"] == "realm-crashed"
        assert isinstance(dumped["timestamp"], str)
