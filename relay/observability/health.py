"""
Health and Metrics HTTP Endpoints for the relay worker
Serves /health (consumer identity and status) and /metrics (shared counters)
"""

import asyncio
import json
import threading
import time
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple

import structlog
from redis.asyncio import Redis

from relay import __version__
from relay.observability.metrics import RelayCounters

logger = structlog.get_logger(__name__)

# Bound on how long a /metrics request waits for Redis
METRICS_TIMEOUT_SECONDS = 5.0


class HealthStatus:
    """
    Tracks consumer identity and the health of the Redis connection
    """

    def __init__(self, consumer_name: str, stream: str, group: str):
        self.consumer_name = consumer_name
        self.stream = stream
        self.group = group
        self.start_time = datetime.now(timezone.utc)
        self.version = __version__
        self.redis_up = True
        self.redis_latency_ms = 0.0
        self.last_check: Optional[str] = None
        self.workers_provider: Optional[Callable[[], Dict[str, int]]] = None

    def update_redis(self, is_up: bool, latency_ms: float) -> None:
        self.redis_up = is_up
        self.redis_latency_ms = round(latency_ms, 2)
        self.last_check = datetime.now(timezone.utc).isoformat()

    def get_overall_status(self) -> str:
        return "healthy" if self.redis_up else "unhealthy"

    def get_uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert health status to dictionary for JSON response

        Returns:
            Dict with status, consumer identity, uptime, version, workers
        """
        data: Dict[str, Any] = {
            "status": self.get_overall_status(),
            "consumerName": self.consumer_name,
            "stream": self.stream,
            "group": self.group,
            "uptime_seconds": round(self.get_uptime_seconds(), 2),
            "version": self.version,
            "dependencies": {
                "redis": {
                    "status": "up" if self.redis_up else "down",
                    "latency_ms": self.redis_latency_ms,
                    "last_check": self.last_check,
                }
            },
        }
        if self.workers_provider is not None:
            data["workers"] = self.workers_provider()
        return data


async def check_redis_health(redis: Redis, timeout_seconds: float = 5.0) -> Tuple[bool, float]:
    """
    Check Redis health with a PING

    Args:
        redis: Shared Redis client
        timeout_seconds: Timeout for the check

    Returns:
        Tuple of (is_healthy, latency_ms)
    """
    try:
        start_time = time.time()
        await asyncio.wait_for(redis.ping(), timeout=timeout_seconds)
        latency_ms = (time.time() - start_time) * 1000

        logger.debug("Redis health check passed", latency_ms=latency_ms)
        return (True, latency_ms)

    except Exception as e:
        logger.warning("Redis health check failed", error=str(e))
        return (False, 0.0)


async def run_periodic_health_checks(
    redis: Redis, status: HealthStatus, interval_seconds: float = 30
) -> None:
    """
    Run Redis health checks periodically in the background

    Args:
        redis: Shared Redis client
        status: Status object updated with each result
        interval_seconds: Interval between health checks
    """
    logger.info("Starting periodic health checks", interval_seconds=interval_seconds)

    while True:
        is_up, latency_ms = await check_redis_health(redis)
        status.update_redis(is_up, latency_ms)
        await asyncio.sleep(interval_seconds)


class HealthHTTPHandler(BaseHTTPRequestHandler):
    """
    HTTP handler for /health and /metrics

    Runs on the server thread; counter reads are scheduled onto the
    service's event loop, which owns the Redis client.
    """

    status: HealthStatus
    counters: RelayCounters
    loop: asyncio.AbstractEventLoop

    def do_GET(self):
        """Handle GET requests"""
        path = self.path.split("?", 1)[0]

        if path == "/health":
            health_data = self.status.to_dict()
            status_code = 200 if health_data["status"] == "healthy" else 503
            self._send_json(status_code, health_data)

        elif path == "/metrics":
            future = asyncio.run_coroutine_threadsafe(self.counters.snapshot(), self.loop)
            try:
                counters = future.result(timeout=METRICS_TIMEOUT_SECONDS)
            except Exception as e:
                future.cancel()
                logger.error("Failed to read metrics", error=str(e))
                self._send_json(500, {"error": "Failed to get metrics"})
                return
            self._send_json(200, counters)

        else:
            self.send_response(404)
            self.end_headers()

    def _send_json(self, status_code: int, data: Dict[str, Any]) -> None:
        body = json.dumps(data).encode()
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        """Suppress default logging"""
        pass


def start_health_server(
    port: int,
    status: HealthStatus,
    counters: RelayCounters,
    loop: asyncio.AbstractEventLoop,
    host: str = "0.0.0.0",
) -> ThreadingHTTPServer:
    """
    Start HTTP server for /health and /metrics

    Args:
        port: HTTP port (0 picks a free port)
        status: Health status reported by /health
        counters: Shared counters reported by /metrics
        loop: Event loop that owns the Redis client

    Returns:
        The running server; call shutdown() to stop it
    """
    handler = type(
        "BoundHealthHTTPHandler",
        (HealthHTTPHandler,),
        {"status": status, "counters": counters, "loop": loop},
    )
    server = ThreadingHTTPServer((host, port), handler)

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    logger.info("Health check server started", port=server.server_address[1])
    return server
