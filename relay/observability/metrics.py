"""
Metrics for the relay worker
Prometheus instruments for this process, plus the shared Redis counters
that the dashboard and the /metrics endpoint read across all consumers
"""

from typing import Dict

import structlog
from prometheus_client import Counter, Gauge, Histogram, start_http_server
from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

# Shared counter keys (written by every consumer, read by the dashboard)
FORWARDED_KEY = "metrics:client:webhooks_forwarded"
FAILED_KEY = "metrics:client:webhooks_failed"
DLQ_SIZE_KEY = "metrics:client:dlq_size"

# Counters
webhooks_forwarded_total = Counter(
    "relay_webhooks_forwarded_total", "Webhooks delivered successfully"
)

webhooks_failed_total = Counter(
    "relay_webhooks_failed_total", "Webhooks dead-lettered by error kind", ["error_kind"]
)

webhooks_skipped_total = Counter(
    "relay_webhooks_skipped_total", "Webhooks acknowledged without forwarding", ["reason"]
)

delivery_attempts_total = Counter(
    "relay_delivery_attempts_total", "HTTP delivery attempts by outcome", ["outcome"]
)

dlq_operations_total = Counter(
    "relay_dlq_operations_total", "Dead-letter operations", ["operation"]
)

# Gauges
workers_in_flight = Gauge("relay_workers_in_flight", "Events currently being processed")

queue_depth = Gauge("relay_queue_depth", "Claimed events waiting for a worker")

# Histograms
delivery_duration_seconds = Histogram(
    "relay_delivery_duration_seconds",
    "Time taken to deliver a webhook, including retries",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server

    Args:
        port: HTTP port to expose /metrics endpoint (default 9090)
    """
    start_http_server(port)
    logger.info("Prometheus metrics server started", port=port)


def record_attempt(outcome: str) -> None:
    """Count one HTTP attempt (success, client_error, server_error, transport_error)"""
    delivery_attempts_total.labels(outcome=outcome).inc()


def record_skipped(reason: str) -> None:
    webhooks_skipped_total.labels(reason=reason).inc()


def observe_delivery_duration(duration_seconds: float) -> None:
    delivery_duration_seconds.observe(duration_seconds)


class RelayCounters:
    """
    Counters shared by all consumers through Redis

    Each update also feeds the matching Prometheus instrument of this process.
    """

    def __init__(self, redis: Redis):
        self._redis = redis

    async def record_forwarded(self) -> None:
        webhooks_forwarded_total.inc()
        await self._redis.incr(FORWARDED_KEY)

    async def record_failed(self, error_kind: str) -> None:
        webhooks_failed_total.labels(error_kind=error_kind).inc()
        await self._redis.incr(FAILED_KEY)

    async def adjust_dlq_size(self, delta: int) -> None:
        dlq_operations_total.labels(operation="add" if delta > 0 else "remove").inc()
        await self._redis.incrby(DLQ_SIZE_KEY, delta)

    async def snapshot(self) -> Dict[str, int]:
        """
        Read the shared counters

        Returns:
            {"forwarded": int, "failed": int, "dlqSize": int}
        """
        forwarded = await self._redis.get(FORWARDED_KEY)
        failed = await self._redis.get(FAILED_KEY)
        dlq_size = await self._redis.get(DLQ_SIZE_KEY)

        return {
            "forwarded": int(forwarded or 0),
            "failed": int(failed or 0),
            "dlqSize": int(dlq_size or 0),
        }
