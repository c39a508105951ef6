# Overview: Domain events, the per-restaurant in-process broker and the dispatcher used by routes.

"""
Real-time Event Dispatch

Domain operations never publish directly. They return the DomainEvents they
produced and the route hands them to dispatch() after the database commit.

TOPICS: one per restaurant. A subscriber only ever receives events of the
restaurant captured by its session.

DELIVERY: fire-and-forget. A failing publish is logged and never fails the
request. Slow subscribers drop events once their queue is full.
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from flask import current_app

from resto.time_utils import utcnow, to_utc_z


logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100
HEARTBEAT_SECONDS = 15


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened inside one restaurant."""
    restaurant_id: int
    type: str
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.payload}


class Subscription:
    """A single SSE client listening on one restaurant topic."""

    def __init__(self, broker: "EventBroker", restaurant_id: int, maxsize: int = SUBSCRIBER_QUEUE_SIZE):
        self.broker = broker
        self.restaurant_id = restaurant_id
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)

    def get(self, timeout: float | None = None) -> DomainEvent | None:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.broker.unsubscribe(self)


class EventBroker:
    """In-process publish/subscribe keyed by restaurant_id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._topics: dict[int, set[Subscription]] = {}

    def subscribe(self, restaurant_id: int) -> Subscription:
        sub = Subscription(self, restaurant_id)
        with self._lock:
            self._topics.setdefault(restaurant_id, set()).add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._topics.get(sub.restaurant_id)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._topics[sub.restaurant_id]

    def subscriber_count(self, restaurant_id: int) -> int:
        with self._lock:
            return len(self._topics.get(restaurant_id, ()))

    def publish(self, event: DomainEvent) -> int:
        """Deliver to every subscriber of the event's restaurant. Returns deliveries."""
        with self._lock:
            subs = list(self._topics.get(event.restaurant_id, ()))

        delivered = 0
        for sub in subs:
            try:
                sub.queue.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.warning(
                    "Dropping %s for slow subscriber on restaurant %s",
                    event.type, event.restaurant_id,
                )
        return delivered


broker = EventBroker()


def dispatch(events: Iterable[DomainEvent]) -> None:
    """
    Publish events to their restaurant topics.

    Never raises: broker failures are logged and swallowed so the caller's
    response is unaffected.
    """
    if not current_app.config.get("REALTIME_ENABLED", True):
        return

    for event in events or ():
        try:
            broker.publish(event)
        except Exception:
            logger.exception("Failed to publish %s for restaurant %s", event.type, event.restaurant_id)


def format_sse(event_type: str, data: Any) -> str:
    """Serialize one Server-Sent Events frame."""
    body = json.dumps(data, default=str)
    return f"event: {event_type}\ndata: {body}\n\n"


def stream(sub: Subscription, *, heartbeat: float = HEARTBEAT_SECONDS, max_events: int | None = None) -> Iterator[str]:
    """
    Yield SSE frames for a subscription until the client disconnects.

    Sends a 'connected' frame first and a comment heartbeat whenever the
    topic is quiet. max_events bounds the stream (used by tests).
    """
    sent = 0
    try:
        yield format_sse("connected", {"restaurant_id": sub.restaurant_id, "at": to_utc_z(utcnow())})
        while max_events is None or sent < max_events:
            event = sub.get(timeout=heartbeat)
            if event is None:
                yield ": heartbeat\n\n"
                continue
            yield format_sse(event.type, event.payload)
            sent += 1
    finally:
        sub.close()
