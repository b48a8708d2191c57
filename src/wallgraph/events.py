# src/wallgraph/events.py
"""Synchronous observer bus for structural and proximity-merge notifications."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    NODE_CREATED = "node_created"
    NODE_UPDATED = "node_updated"
    NODE_REMOVED = "node_removed"
    SEGMENT_CREATED = "segment_created"
    SEGMENT_REMOVED = "segment_removed"
    WALL_CREATED = "wall_created"
    WALL_UPDATED = "wall_updated"
    WALL_REMOVED = "wall_removed"
    MERGE_CREATED = "merge_created"
    MERGE_SEPARATED = "merge_separated"


@dataclass
class Event:
    kind: EventKind
    entity_id: str
    payload: Any = None
    sequence: int = 0


Subscriber = Callable[[Event], None]


@dataclass(eq=False)
class _Subscription:
    callback: Subscriber
    kinds: Optional[frozenset[EventKind]] = None

    def wants(self, event: Event) -> bool:
        return self.kinds is None or event.kind in self.kinds


@dataclass
class EventBus:
    """Delivers each published event once to every matching subscriber, in order.

    Subscribers run inside ``publish``. A subscriber that raises is logged and
    skipped; delivery to the remaining subscribers continues.
    """

    history_size: int = 1000
    _subscriptions: list[_Subscription] = field(default_factory=list)
    _sequence: int = 0

    def __post_init__(self) -> None:
        self.history: deque[Event] = deque(maxlen=self.history_size)

    def subscribe(
        self, callback: Subscriber, kinds: Optional[Iterable[EventKind]] = None
    ) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        sub = _Subscription(callback, frozenset(kinds) if kinds is not None else None)
        self._subscriptions.append(sub)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def publish(self, kind: EventKind, entity_id: str, payload: Any = None) -> Event:
        self._sequence += 1
        event = Event(kind=kind, entity_id=entity_id, payload=payload, sequence=self._sequence)
        self.history.append(event)
        # Copy so callbacks may unsubscribe while being notified
        for sub in list(self._subscriptions):
            if not sub.wants(event):
                continue
            try:
                sub.callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", sub.callback, kind.value)
        return event

    def clear_history(self) -> None:
        self.history.clear()
