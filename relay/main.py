"""
Relay Worker Main Entrypoint
Consumes received webhooks from the Redis stream and forwards them to local destinations
"""

import asyncio
import os
import signal
import sys
from http.server import ThreadingHTTPServer
from typing import List, Optional

import httpx
import socketio
import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from relay.config.loader import load_config
from relay.config.settings import RedisSettings, RelaySettings
from relay.consumer.stream import StreamConsumer
from relay.destinations.resolver import DestinationResolver
from relay.dlq.router import DeadLetterRouter
from relay.forwarding.circuit_breaker import CircuitBreaker
from relay.forwarding.forwarder import Forwarder
from relay.observability.health import HealthStatus, run_periodic_health_checks, start_health_server
from relay.observability.heartbeat import HeartbeatPublisher
from relay.observability.logging import configure_logging
from relay.observability.metrics import RelayCounters, start_metrics_server
from relay.observability.tracing import init_tracing
from relay.worker.pool import WorkerPool
from relay.worker.processor import EventProcessor

logger = structlog.get_logger(__name__)

HEALTH_CHECK_INTERVAL_SECONDS = 10.0


def create_redis_client(settings: RedisSettings) -> Redis:
    """
    Build the shared Redis client

    Args:
        settings: Redis settings; url is either a redis:// URL or host:port

    Returns:
        Redis client returning str values
    """
    if settings.url.startswith(("redis://", "rediss://")):
        return Redis.from_url(
            settings.url,
            password=settings.password,
            db=settings.db,
            decode_responses=True,
            socket_connect_timeout=settings.socket_connect_timeout,
        )

    host, _, port = settings.url.partition(":")
    return Redis(
        host=host,
        port=int(port or 6379),
        password=settings.password,
        db=settings.db,
        decode_responses=True,
        socket_connect_timeout=settings.socket_connect_timeout,
    )


class RelayService:
    """
    Relay worker orchestrator

    Wires the stream consumer, destination resolver, forwarder and DLQ
    into a worker pool, and runs the health endpoint and heartbeat beside it.
    """

    def __init__(self, config: RelaySettings):
        """
        Initialize relay service

        Args:
            config: Validated relay configuration
        """
        self.config = config

        self.redis = create_redis_client(config.redis)
        self.http = httpx.AsyncClient(
            timeout=config.worker.request_timeout_seconds, follow_redirects=True
        )

        self.counters = RelayCounters(self.redis)
        self.consumer = StreamConsumer(
            self.redis,
            stream=config.stream.stream_name,
            group=config.stream.consumer_group,
            consumer_name=config.stream.consumer_name,
            batch_size=config.worker.batch_size,
            block_timeout_ms=config.worker.block_timeout,
        )
        self.dead_letters = DeadLetterRouter(
            self.redis,
            dlq_stream=config.stream.dead_letter_queue,
            main_stream=config.stream.stream_name,
            counters=self.counters,
            max_len=config.stream.stream_max_len,
        )
        self.forwarder = Forwarder(self.http, CircuitBreaker())
        self.processor = EventProcessor(
            self.consumer,
            DestinationResolver(self.redis),
            self.forwarder,
            self.dead_letters,
            self.counters,
        )
        self.pool = WorkerPool(
            self.consumer,
            self.processor,
            worker_count=config.worker.worker_count,
            poll_delay_seconds=config.worker.poll_delay_ms / 1000,
            reclaim_idle_ms=config.worker.reclaim_idle_ms,
            reclaim_interval_seconds=config.worker.reclaim_interval_seconds,
        )

        self.health = HealthStatus(
            consumer_name=config.stream.consumer_name,
            stream=config.stream.stream_name,
            group=config.stream.consumer_group,
        )
        self.health.workers_provider = self.pool.stats
        self.heartbeat = HeartbeatPublisher(
            socketio.AsyncClient(reconnection=False),
            consumer_name=config.stream.consumer_name,
            realtime_url=config.observability.realtime_url,
            interval_seconds=config.observability.heartbeat_interval_seconds,
        )

        self._shutdown_event = asyncio.Event()
        self._background: List[asyncio.Task] = []
        self._health_server: Optional[ThreadingHTTPServer] = None

    async def start(self) -> None:
        """Create the consumer group and start workers and side tasks"""
        observability = self.config.observability

        if observability.enable_tracing:
            init_tracing()

        await self.consumer.ensure_group()

        self._health_server = start_health_server(
            observability.client_port,
            self.health,
            self.counters,
            asyncio.get_running_loop(),
        )
        self._background.append(
            asyncio.create_task(
                run_periodic_health_checks(self.redis, self.health, HEALTH_CHECK_INTERVAL_SECONDS)
            )
        )
        self._background.append(asyncio.create_task(self.heartbeat.run()))

        self.pool.start()

        logger.info(
            "Relay worker started",
            consumer=self.consumer.consumer_name,
            stream=self.consumer.stream,
            group=self.consumer.group,
            workers=self.pool.worker_count,
        )

    async def run(self) -> None:
        """Run until shutdown() is called, then drain and release resources"""
        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Drain in-flight events, stop side tasks and close clients"""
        await self.pool.stop(timeout=self.config.worker.shutdown_timeout_seconds)

        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
        await self.heartbeat.close()

        if self._health_server is not None:
            self._health_server.shutdown()
            self._health_server.server_close()
            self._health_server = None

        await self.http.aclose()
        await self.redis.aclose()
        logger.info("Relay worker stopped")

    def shutdown(self) -> None:
        """
        Request graceful shutdown
        """
        logger.info("Shutdown signal received")
        self._shutdown_event.set()


async def main() -> None:
    """
    Main entrypoint
    """
    try:
        config = load_config(os.environ.get("RELAY_CONFIG_FILE"))
    except ValidationError as e:
        configure_logging()
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    configure_logging(config.observability.log_level, config.observability.log_format)

    logger.info("Starting relay worker", consumer=config.stream.consumer_name)

    if config.observability.metrics_port > 0:
        start_metrics_server(port=config.observability.metrics_port)

    service = RelayService(config)

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, service.shutdown)

    try:
        await service.run()
    except Exception as e:
        logger.error("Relay worker failed", error=str(e))
        sys.exit(1)


def run() -> None:
    """Console script entrypoint"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
