"""Tests for the receipt change event bus."""

import asyncio
import json
import uuid

import pytest

from sugarop.schemas.events import ReceiptEvent, ReceiptEventType
from sugarop.services.receipt_events import ReceiptEventBus, format_sse


@pytest.mark.asyncio
async def test_publish_reaches_only_the_owner():
    bus = ReceiptEventBus()
    receipt_id = uuid.uuid4()

    async with bus.subscribe("owner") as mine, bus.subscribe("other") as theirs:
        bus.publish("owner", ReceiptEventType.RECEIPT_CREATED, receipt_id, "completed")

        event = mine.get_nowait()
        assert event.receipt_id == receipt_id
        assert event.status == "completed"
        assert theirs.empty()

    assert bus.subscriber_count("owner") == 0


def test_publish_without_subscribers_is_a_no_op():
    ReceiptEventBus().publish("nobody", ReceiptEventType.RECEIPT_UPDATED)


@pytest.mark.asyncio
async def test_full_queue_drops_event_without_raising():
    bus = ReceiptEventBus(queue_size=1)

    async with bus.subscribe("owner") as queue:
        bus.publish("owner", ReceiptEventType.RECEIPT_CREATED)
        bus.publish("owner", ReceiptEventType.RECEIPT_UPDATED)

        assert queue.qsize() == 1
        assert queue.get_nowait().event_type == ReceiptEventType.RECEIPT_CREATED


@pytest.mark.asyncio
async def test_stream_emits_heartbeat_when_idle():
    bus = ReceiptEventBus(heartbeat_interval=0.01)
    stream = bus.stream("owner")

    message = await asyncio.wait_for(stream.__anext__(), timeout=1)
    await stream.aclose()

    assert message.startswith("event: heartbeat\n")


def test_format_sse():
    event = ReceiptEvent(event_type=ReceiptEventType.RECEIPT_UPDATED, status="completed")

    message = format_sse(event)

    event_line, data_line, _, _ = message.split("\n")
    assert event_line == "event: receipt:updated"
    assert json.loads(data_line[len("data: "):])["status"] == "completed"
