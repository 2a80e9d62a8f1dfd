"""
Worker Pool
A poller claims batches into a bounded queue; N workers drain it concurrently
"""

import asyncio
from typing import Dict, List, Optional, Set

import structlog

from relay.consumer.stream import StreamConsumer
from relay.models.event import WebhookEvent
from relay.observability import metrics
from relay.observability.logging import bind_context
from relay.worker.processor import EventProcessor

logger = structlog.get_logger(__name__)


class WorkerPool:
    """
    Fixed-size pool of workers fed from one consumer

    The consumer group already guarantees each claimed entry belongs to this
    consumer alone. Within the process, ids that are queued or in flight are
    tracked so a reclaim sweep never hands an entry to a second worker. Each
    worker finishes its event (forwarded, skipped or dead-lettered) before
    taking the next one.
    """

    def __init__(
        self,
        consumer: StreamConsumer,
        processor: EventProcessor,
        worker_count: int = 5,
        poll_delay_seconds: float = 0.1,
        queue_size: Optional[int] = None,
        reclaim_idle_ms: int = 0,
        reclaim_interval_seconds: float = 30.0,
    ):
        """
        Initialize worker pool

        Args:
            consumer: Stream consumer that claims events
            processor: Per-event pipeline
            worker_count: Number of concurrent workers
            poll_delay_seconds: Pause between batch reads
            queue_size: Bound on claimed-but-unstarted events (defaults to consumer batch size)
            reclaim_idle_ms: Reclaim entries pending at least this long (0 disables)
            reclaim_interval_seconds: Interval between reclaim sweeps
        """
        self._consumer = consumer
        self._processor = processor
        self.worker_count = worker_count
        self.poll_delay_seconds = poll_delay_seconds
        self.reclaim_idle_ms = reclaim_idle_ms
        self.reclaim_interval_seconds = reclaim_interval_seconds

        self._queue: asyncio.Queue[WebhookEvent] = asyncio.Queue(
            maxsize=queue_size or consumer.batch_size
        )
        self._stopping = asyncio.Event()
        self._feeders: List[asyncio.Task] = []
        self._workers: List[asyncio.Task] = []
        self._in_flight = 0
        self._owned: Set[str] = set()
        self.processed = 0

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._stopping.is_set()

    def start(self) -> None:
        """Start the poller, the reclaim sweep (if enabled), and the workers"""
        if self._workers:
            raise RuntimeError("WorkerPool already started")

        self._stopping.clear()
        self._feeders.append(asyncio.create_task(self._poll_loop(), name="relay-poller"))
        if self.reclaim_idle_ms > 0:
            self._feeders.append(asyncio.create_task(self._reclaim_loop(), name="relay-reclaim"))

        for worker_id in range(self.worker_count):
            self._workers.append(
                asyncio.create_task(self._worker(worker_id), name=f"relay-worker-{worker_id}")
            )

        logger.info("Worker pool started", workers=self.worker_count)

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Draining shutdown

        Stops claiming new batches, waits up to `timeout` for claimed events
        to reach a terminal state, then cancels the workers. Events still
        unfinished stay pending in the stream and are picked up by a later
        reclaim sweep.

        Args:
            timeout: Seconds to wait for in-flight and queued events
        """
        if not self._workers:
            return

        logger.info("Stopping worker pool", queued=self._queue.qsize(), in_flight=self._in_flight)
        self._stopping.set()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        # The poller may be inside a blocking read; let it return
        if self._feeders:
            _, pending = await asyncio.wait(self._feeders, timeout=timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._feeders, return_exceptions=True)

        try:
            await asyncio.wait_for(self._queue.join(), timeout=max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            logger.warning(
                "Shutdown timeout reached, leaving events pending",
                queued=self._queue.qsize(),
                in_flight=self._in_flight,
            )

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)

        self._feeders.clear()
        self._workers.clear()
        self._owned.clear()
        metrics.workers_in_flight.set(0)
        logger.info("Worker pool stopped", processed=self.processed)

    def stats(self) -> Dict[str, int]:
        return {
            "workers": len(self._workers),
            "in_flight": self._in_flight,
            "queued": self._queue.qsize(),
            "processed": self.processed,
        }

    async def _enqueue(self, events: List[WebhookEvent]) -> None:
        for event in events:
            # XAUTOCLAIM also returns entries this consumer is still working on
            if event.message_id in self._owned:
                logger.debug("Skipping entry already held", message_id=event.message_id)
                continue
            self._owned.add(event.message_id)
            await self._queue.put(event)
        metrics.queue_depth.set(self._queue.qsize())

    async def _poll_loop(self) -> None:
        logger.info(
            "Polling stream",
            stream=self._consumer.stream,
            group=self._consumer.group,
            consumer=self._consumer.consumer_name,
        )
        while not self._stopping.is_set():
            try:
                batch = await self._consumer.read_batch()
                await self._enqueue(batch)
            except Exception as e:
                logger.error("Error polling stream", error=str(e))
            # Keeps empty polls from spinning
            await asyncio.sleep(self.poll_delay_seconds)

    async def _reclaim_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.reclaim_interval_seconds)
                return
            except asyncio.TimeoutError:
                pass

            try:
                events = await self._consumer.reclaim_stale(self.reclaim_idle_ms)
                await self._enqueue(events)
            except Exception as e:
                logger.error("Error reclaiming pending entries", error=str(e))

    async def _worker(self, worker_id: int) -> None:
        log = logger.bind(worker_id=worker_id)
        log.info("Worker started")

        while True:
            event = await self._queue.get()
            metrics.queue_depth.set(self._queue.qsize())
            self._in_flight += 1
            metrics.workers_in_flight.inc()
            bind_context(worker_id=worker_id, message_id=event.message_id)
            try:
                await self._processor.process(event)
                self.processed += 1
            except Exception as e:
                # The entry stays pending; a reclaim sweep will retry it
                log.error(
                    "Event processing aborted, entry left pending",
                    message_id=event.message_id,
                    error=str(e),
                )
            finally:
                self._in_flight -= 1
                self._owned.discard(event.message_id)
                metrics.workers_in_flight.dec()
                self._queue.task_done()
