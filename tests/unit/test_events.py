"""Tests for the in-process event bus."""

from __future__ import annotations

import asyncio

import pytest

from quarry.events import (
    BotTyping,
    DocumentProgress,
    EventBus,
    MessageChunk,
    area_topic,
    chat_topic,
)


def test_topic_names():
    assert area_topic(3) == "area-3"
    assert chat_topic(9) == "chat-9"


def test_event_to_dict_carries_wire_name():
    event = DocumentProgress(document_id=1, status="Processing", progress=30)
    assert event.to_dict() == {
        "event": "DocumentProgress",
        "document_id": 1,
        "status": "Processing",
        "progress": 30,
        "error": None,
    }
    assert MessageChunk(chat_id=2, text="hi").to_dict()["event"] == "ReceiveMessageChunk"


@pytest.mark.asyncio
async def test_publish_reaches_every_subscriber_on_topic():
    bus = EventBus()
    first = bus.subscribe(chat_topic(1))
    second = bus.subscribe(chat_topic(1))

    assert bus.publish(chat_topic(1), BotTyping(chat_id=1)) == 2
    assert await first.get(timeout=1) == BotTyping(chat_id=1)
    assert await second.get(timeout=1) == BotTyping(chat_id=1)


@pytest.mark.asyncio
async def test_topics_are_isolated():
    bus = EventBus()
    chat_one = bus.subscribe(chat_topic(1))
    bus.subscribe(chat_topic(2))

    bus.publish(chat_topic(2), BotTyping(chat_id=2))
    with pytest.raises(asyncio.TimeoutError):
        await chat_one.get(timeout=0.05)


def test_publish_without_subscribers_is_a_no_op():
    bus = EventBus()
    assert bus.publish(area_topic(1), DocumentProgress(1, "Processing", 10)) == 0


@pytest.mark.asyncio
async def test_full_queue_drops_events_without_blocking():
    bus = EventBus(queue_size=2)
    slow = bus.subscribe(chat_topic(1))
    fast = bus.subscribe(chat_topic(1))

    for i in range(2):
        bus.publish(chat_topic(1), MessageChunk(chat_id=1, text=str(i)))
    assert (await fast.get(timeout=1)).text == "0"

    # slow is full, fast has one slot free
    assert bus.publish(chat_topic(1), MessageChunk(chat_id=1, text="2")) == 1
    assert [(await slow.get(timeout=1)).text for _ in range(2)] == ["0", "1"]
    with pytest.raises(asyncio.TimeoutError):
        await slow.get(timeout=0.05)


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order():
    bus = EventBus()
    sub = bus.subscribe(area_topic(5))
    for progress in (10, 30, 50):
        bus.publish(area_topic(5), DocumentProgress(7, "Processing", progress))

    received = [(await sub.get(timeout=1)).progress for _ in range(3)]
    assert received == [10, 30, 50]


def test_unsubscribe_and_context_manager():
    bus = EventBus()
    with bus.subscribe(chat_topic(4)) as sub:
        assert bus.publish(chat_topic(4), BotTyping(chat_id=4)) == 1
        other = bus.subscribe(chat_topic(4))
        assert bus.publish(chat_topic(4), BotTyping(chat_id=4)) == 2
    assert bus.publish(chat_topic(4), BotTyping(chat_id=4)) == 1

    other.close()
    # Closing twice is harmless
    sub.close()
    assert bus.publish(chat_topic(4), BotTyping(chat_id=4)) == 0


@pytest.mark.asyncio
async def test_subscription_is_async_iterable():
    bus = EventBus()
    sub = bus.subscribe(chat_topic(1))
    bus.publish(chat_topic(1), MessageChunk(chat_id=1, text="a"))
    bus.publish(chat_topic(1), MessageChunk(chat_id=1, text="b"))

    texts = []
    async for event in sub:
        texts.append(event.text)
        if len(texts) == 2:
            break
    assert texts == ["a", "b"]
