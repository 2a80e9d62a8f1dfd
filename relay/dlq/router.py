"""
Dead Letter Router
Writes permanently-failed webhooks to the DLQ stream and moves them back on replay
"""

from typing import List, Optional

import structlog
from redis.asyncio import Redis

from relay.models.dead_letter_event import DeadLetterEvent
from relay.models.event import WebhookEvent
from relay.observability.metrics import RelayCounters

logger = structlog.get_logger(__name__)


class DeadLetterNotFound(Exception):
    """Raised when a DLQ entry id does not exist"""

    pass


class DeadLetterRouter:
    """
    Routes failed events to the Dead Letter Queue stream

    Entries keep every original event field plus error, failedAt and
    originalStream, so they can be inspected, discarded or replayed onto
    the main stream.
    """

    def __init__(
        self,
        redis: Redis,
        dlq_stream: str,
        main_stream: str,
        counters: RelayCounters,
        max_len: int = 10000,
    ):
        """
        Initialize DLQ router

        Args:
            redis: Shared Redis client
            dlq_stream: Dead-letter stream name
            main_stream: Stream that replayed events are published to
            counters: Shared counters (DLQ size)
            max_len: Approximate MAXLEN applied when republishing (0 disables)
        """
        self._redis = redis
        self.dlq_stream = dlq_stream
        self.main_stream = main_stream
        self._counters = counters
        self.max_len = max_len

    async def send(self, event: WebhookEvent, error: str) -> str:
        """
        Write failed event to DLQ

        Args:
            event: Event that could not be delivered
            error: Failure description

        Returns:
            DLQ entry id
        """
        dlq_event = DeadLetterEvent.from_event(event, error, original_stream=self.main_stream)
        entry_id = await self._redis.xadd(self.dlq_stream, dlq_event.to_stream_fields())
        await self._counters.adjust_dlq_size(1)

        logger.warning(
            "Event written to DLQ",
            message_id=event.message_id,
            webhook_id=event.webhook_id,
            endpoint_id=event.endpoint_id,
            error=error,
            dlq_entry_id=entry_id,
        )
        return entry_id

    async def list_entries(self, count: int = 50) -> List[DeadLetterEvent]:
        """
        List the oldest DLQ entries

        Args:
            count: Maximum number of entries

        Returns:
            Entries in stream order
        """
        entries = await self._redis.xrange(self.dlq_stream, "-", "+", count=count)
        return [DeadLetterEvent.from_stream_entry(entry_id, data) for entry_id, data in entries]

    async def get(self, entry_id: str) -> Optional[DeadLetterEvent]:
        entries = await self._redis.xrange(self.dlq_stream, entry_id, entry_id)
        if not entries:
            return None
        found_id, data = entries[0]
        return DeadLetterEvent.from_stream_entry(found_id, data)

    async def replay(self, entry_id: str) -> str:
        """
        Move a DLQ entry back onto the main stream

        The DLQ metadata is stripped, the remaining fields are published as a
        fresh event, and the DLQ entry is deleted.

        Args:
            entry_id: DLQ entry id

        Returns:
            Id of the new event on the main stream

        Raises:
            DeadLetterNotFound: If the entry does not exist
        """
        dlq_event = await self.get(entry_id)
        if dlq_event is None:
            raise DeadLetterNotFound(f"Message not found in DLQ: {entry_id}")

        new_id = await self._redis.xadd(
            self.main_stream,
            dlq_event.replay_fields(),
            maxlen=self.max_len or None,
            approximate=True,
        )
        removed = await self._redis.xdel(self.dlq_stream, entry_id)
        if removed:
            await self._counters.adjust_dlq_size(-removed)

        logger.info("Replayed DLQ entry", dlq_entry_id=entry_id, new_message_id=new_id)
        return new_id

    async def discard(self, entry_id: str) -> bool:
        """
        Delete a DLQ entry without republishing

        Returns:
            True if an entry was deleted
        """
        removed = await self._redis.xdel(self.dlq_stream, entry_id)
        if removed:
            await self._counters.adjust_dlq_size(-removed)
            logger.info("Discarded DLQ entry", dlq_entry_id=entry_id)
        return bool(removed)

    async def count(self) -> int:
        """Number of entries currently in the DLQ stream"""
        return await self._redis.xlen(self.dlq_stream)
