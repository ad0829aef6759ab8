"""Fan-out of live events to connected subscribers."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from threading import Lock
from typing import Any, Dict, Mapping
from uuid import uuid4

from models.records import BroadcastEvent

logger = logging.getLogger(__name__)

SENSOR_UPDATE = "sensor-update"
NEW_ALERT = "new-alert"
NEW_REPORT = "new-report"

# Events for a listener that stops reading are dropped once this many are queued.
SUBSCRIBER_QUEUE_SIZE = 1000


class Subscriber:
    """A connected listener with its own bounded delivery queue."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        maxsize: int = SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self.id = uuid4().hex
        self.loop = loop
        self.queue: asyncio.Queue[BroadcastEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: BroadcastEvent) -> None:
        # Delivery always happens on the subscriber's own loop, whatever
        # thread or loop the publisher runs on.
        self.loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: BroadcastEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug(
                "Dropping event for lagging subscriber",
                extra={"event": event.name, "reason": f"{self.dropped} dropped"},
            )

    async def next_event(self) -> BroadcastEvent:
        return await self.queue.get()


class BroadcastChannel:
    """Delivers every published event to every current subscriber.

    No acknowledgement, persistence or backpressure: subscribers that are
    absent when an event is published never see it, and a subscriber whose
    queue is full loses the overflow.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        """Register a listener bound to the running event loop."""
        subscriber = Subscriber(asyncio.get_running_loop(), maxsize=self.queue_size)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
        logger.debug("Subscriber connected", extra={"subscriber_count": self.subscriber_count})
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.pop(subscriber.id, None)
        logger.debug("Subscriber disconnected", extra={"subscriber_count": self.subscriber_count})

    def publish(self, event: str, payload: Mapping[str, Any]) -> int:
        """Queue ``payload`` for every subscriber and return how many were reached."""
        message = BroadcastEvent(name=event, payload=dict(payload))
        with self._lock:
            targets = list(self._subscribers.values())

        delivered = 0
        for subscriber in targets:
            try:
                subscriber.offer(message)
            except RuntimeError:
                # The subscriber's loop has already closed.
                self.unsubscribe(subscriber)
                continue
            delivered += 1
        return delivered


@lru_cache
def build_default_channel() -> BroadcastChannel:
    return BroadcastChannel()
