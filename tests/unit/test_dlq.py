"""
Unit tests for Dead Letter Queue (DLQ)
Tests DLQ writes, inspection, replay and discard against the DLQ stream
"""

import pytest

from fakes import make_event, make_event_fields
from relay.dlq.router import DeadLetterNotFound, DeadLetterRouter
from relay.models.dead_letter_event import DLQ_FIELDS, DeadLetterEvent
from relay.observability.metrics import DLQ_SIZE_KEY


@pytest.fixture
def router(redis, counters) -> DeadLetterRouter:
    return DeadLetterRouter(redis, "webhook-dlq", "webhook-stream", counters, max_len=10000)


@pytest.mark.asyncio
class TestDLQ:
    """Test Dead Letter Queue functionality"""

    async def test_write_event_to_dlq(self, router, redis):
        """Test writing failed event to DLQ with failure metadata"""
        event = make_event(platform="github", extra="kept")

        entry_id = await router.send(event, "Server error: 503")

        entries = await redis.xrange("webhook-dlq")
        assert [found_id for found_id, _ in entries] == [entry_id]
        data = entries[0][1]
        assert data["error"] == "Server error: 503"
        assert data["originalStream"] == "webhook-stream"
        assert data["failedAt"].endswith("+00:00")
        assert data["extra"] == "kept"
        assert data["platform"] == "github"
        assert data["webhookId"] == "wh_1"

    async def test_send_increments_dlq_size(self, router, redis):
        """Test that every DLQ write bumps the shared size counter"""
        await router.send(make_event("1-0"), "boom")
        await router.send(make_event("2-0"), "boom")

        assert redis.values[DLQ_SIZE_KEY] == "2"
        assert await router.count() == 2

    async def test_list_and_get(self, router):
        """Test DLQ inspection"""
        first = await router.send(make_event("1-0"), "first")
        await router.send(make_event("2-0"), "second")

        entries = await router.list_entries(count=1)
        entry = await router.get(first)

        assert len(entries) == 1
        assert entries[0].entry_id == first
        assert entry.error == "first"
        assert await router.get("999-0") is None

    async def test_replay_strips_metadata_and_removes_entry(self, router, redis):
        """Test that replay republishes the original fields and deletes the DLQ entry"""
        fields = make_event_fields(extra="kept")
        entry_id = await router.send(make_event("1-0", extra="kept"), "Client error: 404")

        new_id = await router.replay(entry_id)

        replayed = dict(await redis.xrange("webhook-stream"))[new_id]
        assert replayed == fields
        assert not set(DLQ_FIELDS) & set(replayed)
        assert await router.count() == 0
        assert redis.values[DLQ_SIZE_KEY] == "0"

        (args, kwargs), = redis.calls_to("xadd")[-1:]
        assert kwargs["maxlen"] == 10000
        assert kwargs["approximate"] is True

    async def test_replay_missing_entry(self, router):
        """Test that replaying an unknown id raises DeadLetterNotFound"""
        with pytest.raises(DeadLetterNotFound):
            await router.replay("42-0")

    async def test_discard(self, router, redis):
        """Test that discard deletes without republishing"""
        entry_id = await router.send(make_event(), "boom")

        assert await router.discard(entry_id) is True
        assert await router.discard(entry_id) is False

        assert await router.count() == 0
        assert redis.streams.get("webhook-stream", []) == []
        assert redis.values[DLQ_SIZE_KEY] == "0"


class TestDeadLetterEvent:
    """Test the DLQ entry model"""

    def test_round_trip_from_stream_entry(self):
        """Test that reading an entry separates metadata from event fields"""
        data = {**make_event_fields(), "error": "e", "failedAt": "t", "originalStream": "s"}

        event = DeadLetterEvent.from_stream_entry("5-0", data)

        assert event.entry_id == "5-0"
        assert event.replay_fields() == make_event_fields()
        assert event.to_dict()["data"] == data
