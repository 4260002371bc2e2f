"""
Notification bus for the reconciliation store.

The store announces what happened to the working set (refresh, drift,
refetch failure, deal outcome) without knowing who renders it. The
console watcher and tests subscribe; nothing on the server side does.
"""

import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Generic, TypeVar

from arbscanner.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Store notification types."""

    # Working set
    OPPORTUNITIES_REFRESHED = auto()
    PRICES_RECONCILED = auto()
    DRIFT_DETECTED = auto()
    REFETCH_FAILED = auto()

    # Deals
    DEAL_EXECUTED = auto()
    DEAL_FAILED = auto()


T = TypeVar("T")


@dataclass
class Event(Generic[T]):
    """Notification with a typed payload."""

    type: EventType
    payload: T
    timestamp_us: int = 0
    source: str = ""


EventHandler = Callable[[Event[Any]], Awaitable[None]]
SyncEventHandler = Callable[[Event[Any]], None]


@dataclass(slots=True, frozen=True)
class _Subscription:
    priority: int
    handler: EventHandler | SyncEventHandler
    is_async: bool


class EventBus:
    """
    Priority-ordered fan-out of store notifications.

    Sync handlers can be reached from plain methods (price patching runs
    outside any await); async handlers only through publish(). A handler
    that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[EventType, list[_Subscription]] = {}
        self._published: Counter[EventType] = Counter()

    def _add(self, event_type: EventType, subscription: _Subscription) -> None:
        subscriptions = self._subscriptions.setdefault(event_type, [])
        subscriptions.append(subscription)
        # Stable: equal priorities keep subscription order
        subscriptions.sort(key=lambda s: s.priority, reverse=True)

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe a coroutine handler.

        Args:
            event_type: Notification to receive.
            handler: Async callable taking the event.
            priority: Higher runs earlier.
        """
        self._add(event_type, _Subscription(priority, handler, is_async=True))

    def subscribe_sync(
        self,
        event_type: EventType,
        handler: SyncEventHandler,
        priority: int = 0,
    ) -> None:
        """Subscribe a plain callable; see subscribe()."""
        self._add(event_type, _Subscription(priority, handler, is_async=False))

    def unsubscribe(
        self,
        event_type: EventType,
        handler: EventHandler | SyncEventHandler,
    ) -> bool:
        """
        Remove the first subscription of `handler`.

        Returns:
            True if a subscription was removed.
        """
        subscriptions = self._subscriptions.get(event_type, [])
        for i, subscription in enumerate(subscriptions):
            if subscription.handler is handler:
                del subscriptions[i]
                return True
        return False

    async def publish(self, event: Event[Any]) -> None:
        """Deliver to sync handlers, then await async handlers in priority order."""
        self.publish_sync(event)

        for subscription in self._subscriptions.get(event.type, []):
            if not subscription.is_async:
                continue
            try:
                await subscription.handler(event)  # type: ignore[misc]
            except Exception as e:
                logger.error(f"Async handler error for {event.type.name}: {e}")

    def publish_sync(self, event: Event[Any]) -> None:
        """Deliver to sync handlers only."""
        if not event.timestamp_us:
            event.timestamp_us = get_timestamp_us()
        self._published[event.type] += 1

        for subscription in self._subscriptions.get(event.type, []):
            if subscription.is_async:
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(f"Sync handler error for {event.type.name}: {e}")

    def published_count(self, event_type: EventType) -> int:
        """Number of events of this type published so far."""
        return self._published[event_type]

    def clear(self, event_type: EventType | None = None) -> None:
        """Drop the handlers of one type, or all handlers."""
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)

    def handler_count(self, event_type: EventType) -> int:
        return len(self._subscriptions.get(event_type, []))
