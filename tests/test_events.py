from datetime import datetime, timedelta, timezone

from repair_tracker.events import EventBus, EventType, SessionState, SessionStateRegistry, Store


def test_publish_reaches_all_subscribers():
    bus = EventBus()
    seen = []
    bus.subscribe(EventType.REPAIR_ORDERS_CHANGED, lambda event, payload: seen.append(('a', payload)))
    bus.subscribe(EventType.REPAIR_ORDERS_CHANGED, lambda event, payload: seen.append(('b', payload)))
    bus.subscribe(EventType.SYNC_STARTED, lambda event, payload: seen.append(('c', payload)))

    delivered = bus.publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': 1})

    assert delivered == 2
    assert seen == [('a', {'repair_order_id': 1}), ('b', {'repair_order_id': 1})]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(EventType.SYNC_FINISHED, lambda event, payload: seen.append(event))

    unsubscribe()
    unsubscribe()

    assert bus.publish(EventType.SYNC_FINISHED) == 0
    assert seen == []


def test_failing_handler_does_not_stop_others():
    bus = EventBus()
    seen = []

    def broken(event, payload):
        raise RuntimeError("subscriber bug")

    bus.subscribe(EventType.NOTIFICATIONS_CHANGED, broken)
    bus.subscribe(EventType.NOTIFICATIONS_CHANGED, lambda event, payload: seen.append(payload))

    bus.publish(EventType.NOTIFICATIONS_CHANGED, 42)

    assert seen == [42]


def test_store_notifies_listeners():
    store = Store(1)
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.set(2)
    unsubscribe()
    store.set(3)

    assert store.get() == 3
    assert seen == [2]


def test_session_state_reacts_to_events():
    bus = EventBus()
    state = SessionState("sess-1", bus)
    state.stats.set({'overdue': 3})

    bus.publish(EventType.SYNC_STARTED)
    assert state.sync_in_progress.get() is True
    bus.publish(EventType.REPAIR_ORDERS_CHANGED)
    assert state.stats.get() is None
    bus.publish(EventType.SYNC_FINISHED)
    assert state.sync_in_progress.get() is False


def test_closed_session_state_stops_listening():
    bus = EventBus()
    state = SessionState("sess-1", bus)
    state.close()
    state.stats.set("cached")

    bus.publish(EventType.REPAIR_ORDERS_CHANGED)

    assert state.stats.get() == "cached"


def test_session_states_are_isolated_per_session():
    bus = EventBus()
    registry = SessionStateRegistry(bus)

    first = registry.get_or_create("sess-1")
    second = registry.get_or_create("sess-2")
    first.filters.set({'shop': 'Acme Aero'})

    assert registry.get_or_create("sess-1") is first
    assert second.filters.get() == {}
    assert len(registry) == 2


def test_discard_session_state():
    bus = EventBus()
    registry = SessionStateRegistry(bus)
    state = registry.get_or_create("sess-1")
    state.stats.set("cached")

    registry.discard("sess-1")
    registry.discard("missing")
    bus.publish(EventType.REPAIR_ORDERS_CHANGED)

    assert len(registry) == 0
    assert state.stats.get() == "cached"
    assert registry.get_or_create("sess-1") is not state


def test_expired_session_states_are_evicted():
    bus = EventBus()
    registry = SessionStateRegistry(bus)
    now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

    expired = registry.get_or_create("sess-old", expires_at=now - timedelta(minutes=1), now=now - timedelta(hours=1))
    expired.stats.set("cached")
    registry.get_or_create("sess-new", expires_at=now + timedelta(hours=1), now=now)

    assert "sess-old" not in registry
    assert "sess-new" in registry
    assert bus.publish(EventType.REPAIR_ORDERS_CHANGED) == 1
    assert expired.stats.get() == "cached"


def test_session_states_are_bounded():
    bus = EventBus()
    registry = SessionStateRegistry(bus, max_sessions=3)

    for n in range(1000):
        registry.get_or_create(f"sess-{n}")
    registry.get_or_create("sess-997")
    registry.get_or_create("sess-1000")

    assert len(registry) == 3
    assert "sess-997" in registry
    assert "sess-998" not in registry
    assert bus.publish(EventType.REPAIR_ORDERS_CHANGED) == 3
    assert bus.publish(EventType.SYNC_STARTED) == 3


def test_refresh_updates_expiry():
    registry = SessionStateRegistry(EventBus())
    now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
    state = registry.get_or_create("sess-1", expires_at=now + timedelta(minutes=5), now=now)

    registry.get_or_create("sess-1", expires_at=now + timedelta(hours=2), now=now)
    assert registry.evict_expired(now + timedelta(hours=1)) == 0
    assert registry.evict_expired(now + timedelta(hours=3)) == 1
    assert not state.is_expired(now)
