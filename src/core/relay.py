"""In-process change notification relay.

Services publish a ChangeEvent after every write that other parties care
about; subscribers receive the events that match their topic until they
close the subscription. Delivery is best effort with no replay: a
subscriber that connects late must fetch current state itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from threading import Lock
from typing import Any
from uuid import UUID

from src.schemas.events import ChangeEvent

logger = logging.getLogger(__name__)

AVAILABILITY_TABLE = "teacher_availability"
SESSIONS_TABLE = "sessions"
STATS_TABLE = "app_stats"

# Topics with a fixed name
AVAILABILITY_FEED = "availability-feed"
STUDENT_DASHBOARD_FEED = "availability-for-student-dashboard"
STATS_FEED = "stats-feed"

# Topics parameterized by a profile id: "<prefix>:<uuid>"
TEACHER_SESSIONS_PREFIX = "sessions-for-teacher"
STUDENT_SESSIONS_PREFIX = "sessions-for-student"

EventHandler = Callable[[ChangeEvent], Any]
TopicPredicate = Callable[[ChangeEvent], bool]

_CLOSED = object()


def sessions_for_teacher(teacher_id: UUID | str) -> str:
    """Topic carrying session changes where the given profile is the teacher."""
    return f"{TEACHER_SESSIONS_PREFIX}:{teacher_id}"


def sessions_for_student(student_id: UUID | str) -> str:
    """Topic carrying session changes where the given profile is the student."""
    return f"{STUDENT_SESSIONS_PREFIX}:{student_id}"


def parse_topic(topic: str) -> tuple[str, UUID | None]:
    """Split a topic into its name and optional profile id.

    Raises:
        ValueError: If the topic is unknown or its id is malformed.
    """
    if topic in (AVAILABILITY_FEED, STUDENT_DASHBOARD_FEED, STATS_FEED):
        return topic, None

    prefix, sep, raw_id = topic.partition(":")
    if not sep or prefix not in (TEACHER_SESSIONS_PREFIX, STUDENT_SESSIONS_PREFIX):
        raise ValueError(f"Unknown topic: {topic}")
    return prefix, UUID(raw_id)


def topic_predicate(topic: str) -> TopicPredicate:
    """Build the table-and-row predicate selecting events for a topic."""
    name, profile_id = parse_topic(topic)

    if name in (AVAILABILITY_FEED, STUDENT_DASHBOARD_FEED):
        return lambda event: event.table == AVAILABILITY_TABLE

    if name == STATS_FEED:
        return lambda event: event.table == STATS_TABLE

    column = "teacher_id" if name == TEACHER_SESSIONS_PREFIX else "student_id"
    wanted = str(profile_id)
    return lambda event: event.table == SESSIONS_TABLE and str(event.value(column)) == wanted


class Subscription:
    """A live subscription to one relay topic.

    Events are pushed to registered handlers as they arrive and buffered in
    a bounded queue for async iteration. When the buffer is full the oldest
    event is dropped.
    """

    def __init__(self, relay: NotificationRelay, topic: str, max_queue_size: int) -> None:
        self.relay = relay
        self.topic = topic
        self.predicate = topic_predicate(topic)
        self.dropped = 0
        self._handlers: list[EventHandler] = []
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    @property
    def closed(self) -> bool:
        return self._closed

    def on_event(self, handler: EventHandler) -> None:
        """Register a callback invoked for every matching event."""
        self._handlers.append(handler)

    def close(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.relay._remove(self)
        self._schedule(self._enqueue, _CLOSED)

    def matches(self, event: ChangeEvent) -> bool:
        return not self._closed and self.predicate(event)

    def deliver(self, event: ChangeEvent) -> None:
        """Hand an event to this subscriber from any thread."""
        self._schedule(self._dispatch, event)

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Wait for the next event.

        Returns:
            The next event, or None on timeout or once the subscription is closed.
        """
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            # Keep the marker for any other waiter
            self._enqueue(_CLOSED)
            return None
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def _schedule(self, callback: Callable[[Any], None], item: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            callback(item)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            callback(item)
        else:
            loop.call_soon_threadsafe(callback, item)

    def _dispatch(self, event: ChangeEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber handler failed on topic %s", self.topic)
        self._enqueue(event)

    def _enqueue(self, item: Any) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            if item is not _CLOSED:
                self.dropped += 1
                logger.warning("Subscriber on %s is lagging, dropped oldest event", self.topic)
        self._queue.put_nowait(item)


class NotificationRelay:
    """Topic-based publish/subscribe hub shared by the whole process."""

    def __init__(self, max_queue_size: int = 100) -> None:
        self.max_queue_size = max_queue_size
        self._subscriptions: set[Subscription] = set()
        self._lock = Lock()

    def subscribe(self, topic: str) -> Subscription:
        """Open a subscription on a topic.

        Raises:
            ValueError: If the topic is unknown.
        """
        subscription = Subscription(self, topic, self.max_queue_size)
        with self._lock:
            self._subscriptions.add(subscription)
        logger.debug("Subscribed to %s", topic)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()

    def publish(self, event: ChangeEvent) -> int:
        """Push an event to every matching subscriber.

        Returns:
            int: Number of subscriptions the event was delivered to.
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]

        for subscription in targets:
            subscription.deliver(event)

        if targets:
            logger.debug("Relayed %s %s to %d subscribers", event.type, event.table, len(targets))
        return len(targets)

    def subscriber_count(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions if s.topic == topic)

    def close_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)


# Global singleton instance
_relay: NotificationRelay | None = None


def get_relay() -> NotificationRelay:
    """Get or create the global relay instance."""
    global _relay
    if _relay is None:
        from src.core.config import get_settings

        _relay = NotificationRelay(max_queue_size=get_settings().relay_queue_size)
    return _relay


async def init_relay() -> NotificationRelay:
    """Initialize the relay. Call at app startup."""
    return get_relay()


async def shutdown_relay() -> None:
    """Close every open subscription. Call at app shutdown."""
    global _relay
    if _relay:
        _relay.close_all()
        _relay = None
