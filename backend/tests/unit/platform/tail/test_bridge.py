"""Tests for the single-slot PushPullBridge."""

import asyncio

import pytest

from antennawatch.platform.tail.bridge import PushPullBridge
from antennawatch.platform.tail.exceptions import BridgeTerminated, FetchError


@pytest.mark.asyncio
async def test_consumer_waits_for_publish():
    """A waiting consumer is woken by the next publish."""
    bridge = PushPullBridge()
    consumer = asyncio.create_task(bridge.get())
    await asyncio.sleep(0)
    assert not consumer.done()

    bridge.publish("batch-1")

    assert await asyncio.wait_for(consumer, timeout=1.0) == "batch-1"
    assert bridge.has_pending is False


@pytest.mark.asyncio
async def test_slow_consumer_gets_latest_batch():
    """Unconsumed batches are replaced, never queued."""
    bridge = PushPullBridge()

    bridge.publish("batch-1")
    bridge.publish("batch-2")
    bridge.publish("batch-3")

    assert await bridge.get() == "batch-3"
    assert bridge.published == 3
    assert bridge.overwritten == 2


@pytest.mark.asyncio
async def test_close_wakes_waiting_consumer():
    """Producer termination ends a pending wait instead of hanging."""
    bridge = PushPullBridge()
    consumer = asyncio.create_task(bridge.get())
    await asyncio.sleep(0)

    bridge.close()

    with pytest.raises(BridgeTerminated) as exc_info:
        await asyncio.wait_for(consumer, timeout=1.0)
    assert exc_info.value.cause is None


@pytest.mark.asyncio
async def test_close_with_cause_is_reported():
    """A producer failure travels with the terminal signal."""
    bridge = PushPullBridge()
    error = FetchError("connection lost")

    bridge.close(error)

    with pytest.raises(BridgeTerminated) as exc_info:
        await bridge.get()
    assert exc_info.value.cause is error


@pytest.mark.asyncio
async def test_pending_batch_delivered_before_termination():
    """The last published batch is still handed out after close."""
    bridge = PushPullBridge()
    bridge.publish("final")
    bridge.close()

    assert await bridge.get() == "final"
    with pytest.raises(BridgeTerminated):
        await bridge.get()


@pytest.mark.asyncio
async def test_publish_after_close_raises():
    """The producer side cannot publish once terminated."""
    bridge = PushPullBridge()
    bridge.close()

    with pytest.raises(BridgeTerminated):
        bridge.publish("late")


@pytest.mark.asyncio
async def test_single_consumer_enforced():
    """A second concurrent consumer is rejected."""
    bridge = PushPullBridge()
    first = asyncio.create_task(bridge.get())
    await asyncio.sleep(0)

    with pytest.raises(RuntimeError):
        await bridge.get()

    bridge.publish("batch")
    assert await asyncio.wait_for(first, timeout=1.0) == "batch"


@pytest.mark.asyncio
async def test_iteration_ends_at_termination():
    """Async iteration yields batches and stops on close."""
    bridge = PushPullBridge()
    received = []

    async def _consume():
        async for item in bridge:
            received.append(item)

    consumer = asyncio.create_task(_consume())
    for item in ("a", "b"):
        bridge.publish(item)
        await asyncio.sleep(0.01)
    bridge.close()

    await asyncio.wait_for(consumer, timeout=1.0)
    assert received == ["a", "b"]
