"""
Forwarder
Delivers one webhook to its destination with auth, header rules and bounded retries
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
import structlog

from relay.forwarding.circuit_breaker import CircuitBreaker
from relay.forwarding.headers import apply_auth, build_headers
from relay.forwarding.retry import ErrorKind, calculate_backoff, classify_status
from relay.models.destination import DestinationMapping
from relay.models.event import WebhookEvent
from relay.observability.logging import log_delivery
from relay.observability.metrics import observe_delivery_duration, record_attempt

logger = structlog.get_logger(__name__)

CIRCUIT_OPEN_ERROR = "Circuit breaker open"

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class ForwardResult:
    """
    Outcome of a delivery

    Attributes:
        success: Whether the destination accepted the webhook (2xx)
        error: Failure description (last error after retries)
        error_kind: Failure classification
        attempts: HTTP attempts made (0 when the circuit was open)
        status_code: Status of the last response, if any
    """

    success: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    attempts: int = 0
    status_code: Optional[int] = None


class Forwarder:
    """
    Executes webhook deliveries over a shared HTTP client

    Each attempt feeds the circuit breaker: 2xx and 4xx count as healthy
    responses, 5xx and transport errors as failures.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        circuit_breaker: CircuitBreaker,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize forwarder

        Args:
            client: Shared outbound HTTP client
            circuit_breaker: Breaker shared by all workers
            sleep: Coroutine used for backoff waits
        """
        self._client = client
        self.circuit_breaker = circuit_breaker
        self._sleep = sleep

    async def forward(self, event: WebhookEvent, mapping: DestinationMapping) -> ForwardResult:
        """
        Deliver an event to its mapped destination

        Args:
            event: Event to deliver
            mapping: Resolved, active destination mapping

        Returns:
            ForwardResult describing the outcome
        """
        target_url = mapping.target_url
        log = logger.bind(
            webhook_id=event.webhook_id, endpoint_id=event.endpoint_id, target_url=target_url
        )

        if self.circuit_breaker.is_open(target_url):
            log.warning("Circuit breaker open, delivery skipped")
            return ForwardResult(
                success=False, error=CIRCUIT_OPEN_ERROR, error_kind=ErrorKind.CIRCUIT_OPEN
            )

        body = event.decode_body()
        headers = build_headers(event.parse_headers(), mapping)
        headers, params = apply_auth(headers, event.parse_query(), mapping.auth)
        method = event.method or "POST"
        content = None if method in BODYLESS_METHODS else body

        policy = mapping.retry_policy
        result = ForwardResult(success=False)
        start_time = time.monotonic()

        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                delay = calculate_backoff(attempt, policy)
                log.info(
                    "Retrying delivery",
                    attempt=attempt,
                    max_retries=policy.max_retries,
                    delay_ms=round(delay * 1000, 2),
                    last_error=result.error,
                )
                await self._sleep(delay)

            result.attempts = attempt + 1

            try:
                response = await self._client.request(
                    method,
                    target_url,
                    headers=headers,
                    params=params or None,
                    content=content,
                )
            except httpx.TransportError as e:
                self.circuit_breaker.record_failure(target_url)
                record_attempt(ErrorKind.TRANSPORT_ERROR.value)
                result.error = str(e) or type(e).__name__
                result.error_kind = ErrorKind.TRANSPORT_ERROR
                result.status_code = None
                continue

            result.status_code = response.status_code
            kind = classify_status(response.status_code)

            if kind is None:
                self.circuit_breaker.record_success(target_url)
                record_attempt("success")
                result.success = True
                result.error = None
                result.error_kind = None
                break

            if kind is ErrorKind.CLIENT_ERROR:
                # A 4xx says nothing about destination health
                self.circuit_breaker.record_success(target_url)
                record_attempt(kind.value)
                result.error = f"Client error: {response.status_code}"
                result.error_kind = kind
                break

            self.circuit_breaker.record_failure(target_url)
            record_attempt(kind.value)
            result.error = f"Server error: {response.status_code}"
            result.error_kind = kind

        duration = time.monotonic() - start_time
        observe_delivery_duration(duration)
        log_delivery(
            log,
            webhook_id=event.webhook_id,
            endpoint_id=event.endpoint_id,
            target_url=target_url,
            attempts=result.attempts,
            duration_ms=duration * 1000,
            success=result.success,
            error=result.error,
        )
        return result
