"""
Redis Stream Consumer
Claims webhook events from a stream through a competing-consumer group
"""

from typing import Any, List, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError, ResponseError

from relay.models.event import WebhookEvent

logger = structlog.get_logger(__name__)


class StreamConsumer:
    """
    One named consumer in a consumer group over the webhook stream

    Entries returned by read_batch() are owned by this consumer until
    acknowledged; other consumers in the group never see them.
    """

    def __init__(
        self,
        redis: Redis,
        stream: str,
        group: str,
        consumer_name: str,
        batch_size: int = 10,
        block_timeout_ms: int = 5000,
    ):
        """
        Initialize stream consumer

        Args:
            redis: Shared Redis client (decode_responses=True)
            stream: Stream name
            group: Consumer group name
            consumer_name: This consumer's identity within the group
            batch_size: Maximum entries claimed per read
            block_timeout_ms: How long a read blocks when nothing is available (0 never blocks)
        """
        self._redis = redis
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name
        self.batch_size = batch_size
        self.block_timeout_ms = block_timeout_ms
        self._reclaim_cursor = "0-0"

    async def ensure_group(self) -> None:
        """
        Create the consumer group (and the stream) if missing

        Creating a group that already exists is not an error.
        """
        try:
            await self._redis.xgroup_create(self.stream, self.group, id="$", mkstream=True)
            logger.info("Created consumer group", group=self.group, stream=self.stream)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.info("Consumer group already exists", group=self.group, stream=self.stream)

    async def read_batch(self) -> List[WebhookEvent]:
        """
        Claim up to batch_size never-delivered entries

        Returns:
            Claimed events; empty on timeout or on a read error
        """
        try:
            result = await self._redis.xreadgroup(
                self.group,
                self.consumer_name,
                {self.stream: ">"},
                count=self.batch_size,
                block=self.block_timeout_ms or None,
            )
        except RedisError as e:
            logger.error("Error reading from stream", stream=self.stream, error=str(e))
            return []

        events = _parse_read_result(result)
        if events:
            logger.debug("Claimed batch", count=len(events))
        return events

    async def ack(self, message_id: str) -> None:
        """Acknowledge an entry, removing it from the group's pending list"""
        await self._redis.xack(self.stream, self.group, message_id)

    async def reclaim_stale(self, min_idle_ms: int, count: Optional[int] = None) -> List[WebhookEvent]:
        """
        Take over entries left pending by consumers that stopped without acking

        Walks the pending list with XAUTOCLAIM, one page per call, resuming
        from where the previous call stopped.

        Args:
            min_idle_ms: Only claim entries idle at least this long
            count: Page size (defaults to batch_size)

        Returns:
            Reclaimed events; empty on error
        """
        try:
            result = await self._redis.xautoclaim(
                self.stream,
                self.group,
                self.consumer_name,
                min_idle_ms,
                start_id=self._reclaim_cursor,
                count=count or self.batch_size,
            )
        except RedisError as e:
            logger.error("Error reclaiming pending entries", stream=self.stream, error=str(e))
            return []

        next_cursor, entries = result[0], result[1]
        self._reclaim_cursor = next_cursor or "0-0"

        events = [
            WebhookEvent.from_stream_entry(message_id, fields)
            for message_id, fields in entries
            if fields is not None
        ]
        if events:
            logger.warning("Reclaimed stale pending entries", count=len(events))
        return events


def _parse_read_result(result: Any) -> List[WebhookEvent]:
    """Flatten an XREADGROUP reply into events"""
    if not result:
        return []

    streams = [entries for _stream, entries in result]

    events = []
    for entries in streams:
        for message_id, fields in entries:
            if fields is None:
                continue
            events.append(WebhookEvent.from_stream_entry(message_id, fields))
    return events
