"""In-process topic bus for ingestion progress and chat streaming events.

Topics are scoped by area (``area-<id>``, ingestion progress) and by chat
(``chat-<id>``, message and token events). Delivery is at-most-once to the
subscribers present at publish time: each subscriber owns a bounded queue,
a full queue drops the event, and nothing is persisted or replayed.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar

from loguru import logger

_DEFAULT_QUEUE_SIZE = 1_000


def area_topic(area_id: int) -> str:
    return f"area-{area_id}"


def chat_topic(chat_id: int) -> str:
    return f"chat-{chat_id}"


# ------------------------------------------------------------------
# Event payloads
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "Event"

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class DocumentProgress(Event):
    name: ClassVar[str] = "DocumentProgress"

    document_id: int
    status: str
    progress: int
    error: str | None = None


@dataclass(frozen=True)
class UserMessageReceived(Event):
    name: ClassVar[str] = "ReceiveUserMessage"

    id: int
    chat_id: int
    role: str
    content: str
    created_at: str | None


@dataclass(frozen=True)
class BotTyping(Event):
    name: ClassVar[str] = "BotTyping"

    chat_id: int


@dataclass(frozen=True)
class MessageChunk(Event):
    name: ClassVar[str] = "ReceiveMessageChunk"

    chat_id: int
    text: str


@dataclass(frozen=True)
class MessageComplete(Event):
    name: ClassVar[str] = "MessageStreamComplete"

    id: int
    chat_id: int
    content: str
    content_html: str
    sources: list[dict] = field(default_factory=list)
    created_at: str | None = None
    role: str = "assistant"


@dataclass(frozen=True)
class MessageError(Event):
    name: ClassVar[str] = "MessageStreamError"

    chat_id: int
    error: str


# ------------------------------------------------------------------
# Bus
# ------------------------------------------------------------------


class Subscription:
    """A single listener on one topic. Iterate it, or await ``get()``."""

    def __init__(self, bus: EventBus, topic: str, maxsize: int) -> None:
        self.topic = topic
        self._bus = bus
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)

    def offer(self, event: Event) -> bool:
        """Enqueue without waiting. Returns False if the event was dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self, timeout: float | None = None) -> Event:
        """Wait for the next event (raises TimeoutError after *timeout* seconds)."""
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout)

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event:
        return await self.get()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class EventBus:
    """Topic-scoped fan-out. ``publish`` never blocks and never raises."""

    def __init__(self, queue_size: int = _DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str) -> Subscription:
        sub = Subscription(self, topic, self._queue_size)
        self._subscribers[topic].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.topic)
        if subs and sub in subs:
            subs.remove(sub)
            if not subs:
                del self._subscribers[sub.topic]

    def publish(self, topic: str, event: Event) -> int:
        """Deliver *event* to current subscribers of *topic*.

        Returns:
            Number of subscribers that accepted the event.
        """
        delivered = 0
        for sub in list(self._subscribers.get(topic, ())):
            if sub.offer(event):
                delivered += 1
            else:
                logger.debug(f"Dropped {event.name} for slow subscriber on {topic}")
        return delivered
