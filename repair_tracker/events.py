"""
Events & Session State
======================

Event bus eksplisit dan state per session (cached stats, flag sync).

Publisher tidak tahu siapa yang subscribe: service cukup ``publish``
event bernama, dan state session yang butuh invalidasi subscribe sendiri.
State dibuat per session, bukan global per process.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
Unsubscribe = Callable[[], None]


class EventType(str, Enum):
    REPAIR_ORDERS_CHANGED = "repair_orders.changed"
    NOTIFICATIONS_CHANGED = "notifications.changed"
    SYNC_STARTED = "sync.started"
    SYNC_FINISHED = "sync.finished"


class EventBus:
    """Publish/subscribe sederhana dengan event type bernama."""

    def __init__(self):
        self._handlers: Dict[EventType, List[Callable[[EventType, Any], None]]] = {}

    def subscribe(self, event_type: EventType, handler: Callable[[EventType, Any], None]) -> Unsubscribe:
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
        return unsubscribe

    def publish(self, event_type: EventType, payload: Any = None) -> int:
        """Kirim event ke semua handler. Return jumlah handler yang dipanggil."""
        handlers = list(self._handlers.get(event_type, []))
        for handler in handlers:
            try:
                handler(event_type, payload)
            except Exception:
                # satu subscriber rusak tidak boleh menggagalkan write yang sudah commit
                logger.exception(f"Event handler failed for {event_type.value}")
        return len(handlers)


class Store(Generic[T]):
    """Nilai tunggal dengan kontrak read / subscribe / write."""

    def __init__(self, initial: Optional[T] = None):
        self._value = initial
        self._listeners: List[Callable[[Optional[T]], None]] = []

    def get(self) -> Optional[T]:
        return self._value

    def set(self, value: Optional[T]) -> None:
        self._value = value
        for listener in list(self._listeners):
            listener(value)

    def subscribe(self, listener: Callable[[Optional[T]], None]) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe


class SessionState:
    """State milik satu session user."""

    def __init__(self, session_key: str, event_bus: EventBus, expires_at: Optional[datetime] = None):
        self.session_key = session_key
        self.expires_at = expires_at
        self.stats: Store = Store()
        self.sync_in_progress: Store[bool] = Store(False)
        self.filters: Store[dict] = Store({})
        self._unsubscribers = [
            event_bus.subscribe(EventType.REPAIR_ORDERS_CHANGED, self._invalidate_stats),
            event_bus.subscribe(EventType.SYNC_STARTED, self._on_sync_started),
            event_bus.subscribe(EventType.SYNC_FINISHED, self._on_sync_finished),
        ]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def _invalidate_stats(self, event_type: EventType, payload: Any) -> None:
        self.stats.set(None)

    def _on_sync_started(self, event_type: EventType, payload: Any) -> None:
        self.sync_in_progress.set(True)

    def _on_sync_finished(self, event_type: EventType, payload: Any) -> None:
        self.sync_in_progress.set(False)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class SessionStateRegistry:
    """
    Kumpulan SessionState, di-key dengan session id dari token.

    State dibuang waktu token session-nya expired (dicek tiap
    ``get_or_create``), waktu logout, atau kalau jumlahnya melewati
    ``max_sessions`` (yang paling lama tidak dipakai dibuang duluan).
    """

    def __init__(self, event_bus: EventBus, max_sessions: int = 1000):
        self.event_bus = event_bus
        self.max_sessions = max_sessions
        self._states: "OrderedDict[str, SessionState]" = OrderedDict()

    def get_or_create(self, session_key: str, expires_at: Optional[datetime] = None,
                      now: Optional[datetime] = None) -> SessionState:
        self.evict_expired(now)

        state = self._states.get(session_key)
        if state is None:
            state = SessionState(session_key, self.event_bus, expires_at=expires_at)
            self._states[session_key] = state
        else:
            self._states.move_to_end(session_key)
            if expires_at is not None:
                state.expires_at = expires_at

        while len(self._states) > self.max_sessions:
            oldest_key = next(iter(self._states))
            logger.info(f"Session state limit reached, dropping {oldest_key}")
            self.discard(oldest_key)
        return state

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        expired = [key for key, state in self._states.items() if state.is_expired(now)]
        for key in expired:
            self.discard(key)
        return len(expired)

    def discard(self, session_key: str) -> None:
        state = self._states.pop(session_key, None)
        if state is not None:
            state.close()

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._states

    def __len__(self) -> int:
        return len(self._states)
