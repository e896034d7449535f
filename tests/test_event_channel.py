import asyncio

import pytest

from core.errors import CollaboratorUnavailable
from core.services.events import GENERAL, TOOL_RESULT, EventChannel, SubscriberState


def test_one_pulse_before_operation_event():
    channel = EventChannel(pulse_interval=0.1, server_info={"name": "assistant-manager"})

    async def scenario():
        subscriber = channel.subscribe(GENERAL)
        await asyncio.sleep(0.15)
        channel.publish({"type": "operation", "operation": "list_assistants", "ok": True})
        events = [await subscriber.next_event(timeout=1) for _ in range(3)]
        channel.unsubscribe(subscriber)
        return events

    events = asyncio.run(scenario())

    assert [event["type"] for event in events] == ["connection", "heartbeat", "operation"]
    assert events[0]["server"] == {"name": "assistant-manager"}


def test_subscriber_lifecycle_and_pulse_cancellation():
    channel = EventChannel(pulse_interval=0.02)

    async def scenario():
        subscriber = channel.subscribe()
        assert subscriber.state == SubscriberState.open
        task = subscriber._pulse_task
        channel.unsubscribe(subscriber)
        await asyncio.sleep(0.05)
        return subscriber, task

    subscriber, task = asyncio.run(scenario())

    assert subscriber.state == SubscriberState.closed
    assert task.cancelled()
    assert channel.status()["subscribers"] == 0


def test_closed_subscriber_gets_nothing_and_reconnect_has_no_replay():
    channel = EventChannel(pulse_interval=30)

    async def scenario():
        first = channel.subscribe()
        channel.unsubscribe(first)
        channel.publish({"type": "operation", "operation": "missed"})
        second = channel.subscribe()
        connection = await second.next_event(timeout=1)
        channel.publish({"type": "operation", "operation": "seen"})
        after = await second.next_event(timeout=1)
        channel.unsubscribe(second)
        return first, connection, after

    first, connection, after = asyncio.run(scenario())

    assert first.deliver({"type": "late"}) is False
    assert connection["type"] == "connection"
    assert after["operation"] == "seen"


def test_overflowing_subscriber_is_torn_down_alone():
    channel = EventChannel(pulse_interval=30, queue_size=2)

    async def scenario():
        slow = channel.subscribe()
        fast = channel.subscribe()
        channel.publish({"type": "operation", "n": 1})
        await fast.next_event(timeout=1)
        await fast.next_event(timeout=1)
        delivered = channel.publish({"type": "operation", "n": 2})
        return slow, fast, delivered

    slow, fast, delivered = asyncio.run(scenario())

    assert slow.state == SubscriberState.closed
    assert fast.state == SubscriberState.open
    assert delivered == 1
    assert channel.status()["torn_down"] == 1
    assert channel.status()["subscribers"] == 1


def test_failing_pulse_tears_down_only_that_subscriber():
    channel = EventChannel(pulse_interval=0.02, queue_size=1)

    async def scenario():
        stalled = channel.subscribe()
        reader = channel.subscribe()
        for _ in range(5):
            await reader.next_event(timeout=1)
        return stalled, reader

    stalled, reader = asyncio.run(scenario())

    assert stalled.state == SubscriberState.closed
    assert reader.state == SubscriberState.open


def test_tool_result_subscribers_only_get_acknowledgement():
    channel = EventChannel(pulse_interval=30, server_info={"name": "assistant-manager"})

    async def scenario():
        subscriber = channel.subscribe(TOOL_RESULT, acknowledgement={"status": "accepted"})
        ack = await subscriber.next_event(timeout=1)
        channel.publish({"type": "operation"})
        pending = subscriber.deliver({"type": "result"})
        result = await subscriber.next_event(timeout=1)
        channel.unsubscribe(subscriber)
        return ack, pending, result

    ack, pending, result = asyncio.run(scenario())

    assert ack["type"] == "connection"
    assert ack["status"] == "accepted"
    assert "server" not in ack
    assert pending is True
    assert result == {"type": "result"}


def test_stream_ends_when_subscriber_closes():
    channel = EventChannel(pulse_interval=30)

    async def scenario():
        subscriber = channel.subscribe()
        seen = []

        async def consume():
            async for event in channel.stream(subscriber):
                seen.append(event["type"])

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        channel.unsubscribe(subscriber)
        await asyncio.wait_for(consumer, timeout=1)
        return seen

    assert asyncio.run(scenario()) == ["connection"]


def test_subscriber_limit():
    channel = EventChannel(pulse_interval=30, max_subscribers=1)

    async def scenario():
        channel.subscribe()
        with pytest.raises(CollaboratorUnavailable):
            channel.subscribe()
        await channel.close()

    asyncio.run(scenario())
    assert channel.status()["subscribers"] == 0
