"""
Push-event channel: long-lived subscribers, liveness pulses and teardown.

Each subscriber moves ``connecting -> open -> closed`` exactly once. While
open it receives a ``heartbeat`` every pulse interval from its own pulse task,
plus one ``operation`` event per completed gateway call when it is a general
subscriber. Tool-result subscribers only see what the caller delivers to them
directly. Closed subscribers are forgotten; there is no replay.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from enum import Enum
from typing import Any, AsyncIterator, Optional

import core.config as config
from core.entities import utc_now_iso
from core.errors import CollaboratorUnavailable

logger = config.logger

GENERAL = "general"
TOOL_RESULT = "tool_result"

_CLOSED = object()


class SubscriberState(str, Enum):
    connecting = "connecting"
    open = "open"
    closed = "closed"


def format_sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


class Subscriber:
    def __init__(self, subscriber_id: str, kind: str, queue_size: int):
        self.id = subscriber_id
        self.kind = kind
        self.state = SubscriberState.connecting
        self.created_at = utc_now_iso()
        self.delivered = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._pulse_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self.state == SubscriberState.open

    def deliver(self, event: dict) -> bool:
        """Queue one event; ``False`` when the subscriber cannot take it."""
        if not self.is_open:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        self.delivered += 1
        return True

    async def next_event(self, timeout: Optional[float] = None) -> Optional[dict]:
        """Next queued event, or ``None`` once the subscriber is closed and drained."""
        if self.state == SubscriberState.closed and self._queue.empty():
            return None
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def _close(self) -> None:
        self.state = SubscriberState.closed
        if self._queue.full():
            # An overflowing subscriber loses its backlog; the reader only needs the close marker.
            while not self._queue.empty():
                self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)


class EventChannel:
    def __init__(
        self,
        pulse_interval: float = config.EVENT_PULSE_INTERVAL_SECONDS,
        queue_size: int = config.EVENT_SUBSCRIBER_QUEUE_SIZE,
        max_subscribers: int = config.MAX_EVENT_SUBSCRIBERS,
        server_info: Optional[dict] = None,
    ):
        self.pulse_interval = pulse_interval
        self._queue_size = max(1, queue_size)
        self._max_subscribers = max_subscribers
        self._server_info = dict(server_info or {})
        self._subscribers: dict[str, Subscriber] = {}
        self._ids = itertools.count(1)
        self._published = 0
        self._torn_down = 0

    def subscribe(self, kind: str = GENERAL, acknowledgement: Optional[dict] = None) -> Subscriber:
        """Open a subscriber, queue its connection event and start its pulse task.

        General subscribers get the server identity in the connection event;
        tool-result subscribers get ``acknowledgement`` only.
        """
        if len(self._subscribers) >= self._max_subscribers:
            logger.warning(
                "event_subscriber_rejected",
                extra={"subscribers": len(self._subscribers), "max": self._max_subscribers},
            )
            raise CollaboratorUnavailable("Too many event subscribers")

        subscriber = Subscriber(f"sub-{next(self._ids)}", kind, self._queue_size)
        self._subscribers[subscriber.id] = subscriber
        subscriber.state = SubscriberState.open

        event: dict[str, Any] = {
            "type": "connection",
            "subscriberId": subscriber.id,
            "timestamp": utc_now_iso(),
        }
        if kind == GENERAL:
            event["server"] = dict(self._server_info)
        elif acknowledgement:
            event.update(acknowledgement)
        subscriber.deliver(event)

        subscriber._pulse_task = asyncio.get_running_loop().create_task(
            self._pulse(subscriber), name=f"event-pulse-{subscriber.id}"
        )
        logger.info(
            "event_subscriber_opened",
            extra={"subscriber_id": subscriber.id, "kind": kind},
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber, reason: str = "unsubscribe") -> None:
        if subscriber.state == SubscriberState.closed:
            return
        subscriber._close()
        self._subscribers.pop(subscriber.id, None)
        task = subscriber._pulse_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        subscriber._pulse_task = None
        logger.info(
            "event_subscriber_closed",
            extra={"subscriber_id": subscriber.id, "reason": reason, "delivered": subscriber.delivered},
        )

    def publish(self, event: dict) -> int:
        """Fan ``event`` out to every open general subscriber; returns the delivery count."""
        self._published += 1
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if subscriber.kind != GENERAL:
                continue
            if subscriber.deliver(event):
                delivered += 1
            else:
                self._tear_down(subscriber, "delivery_failed")
        return delivered

    async def stream(self, subscriber: Subscriber) -> AsyncIterator[dict]:
        """Yield events until the subscriber closes; closes it when the consumer stops."""
        try:
            while True:
                event = await subscriber.next_event()
                if event is None:
                    return
                yield event
        finally:
            self.unsubscribe(subscriber, reason="stream_ended")

    async def close(self) -> None:
        for subscriber in list(self._subscribers.values()):
            self.unsubscribe(subscriber, reason="shutdown")
        await asyncio.sleep(0)

    def status(self) -> dict:
        by_kind: dict[str, int] = {}
        for subscriber in self._subscribers.values():
            by_kind[subscriber.kind] = by_kind.get(subscriber.kind, 0) + 1
        return {
            "subscribers": len(self._subscribers),
            "by_kind": by_kind,
            "max_subscribers": self._max_subscribers,
            "pulse_interval_seconds": self.pulse_interval,
            "published": self._published,
            "torn_down": self._torn_down,
        }

    def _tear_down(self, subscriber: Subscriber, reason: str) -> None:
        self._torn_down += 1
        logger.warning(
            "event_subscriber_torn_down",
            extra={"subscriber_id": subscriber.id, "reason": reason},
        )
        self.unsubscribe(subscriber, reason=reason)

    async def _pulse(self, subscriber: Subscriber) -> None:
        while subscriber.is_open:
            await asyncio.sleep(self.pulse_interval)
            if not subscriber.is_open:
                return
            if not subscriber.deliver({"type": "heartbeat", "timestamp": utc_now_iso()}):
                self._tear_down(subscriber, "pulse_failed")
                return
