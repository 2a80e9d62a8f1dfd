"""
Unit tests for the forwarder
Tests delivery, retries and circuit breaker interaction against a mock transport
"""

import base64
import json

import httpx
import pytest

from fakes import make_event, mock_client
from relay.forwarding.circuit_breaker import CircuitBreaker
from relay.forwarding.forwarder import CIRCUIT_OPEN_ERROR, Forwarder
from relay.forwarding.retry import ErrorKind
from relay.models.destination import BearerAuth, DestinationMapping
from relay.models.retry_policy import RetryPolicy

TARGET = "http://localhost:4000/hooks"


def _mapping(**kwargs) -> DestinationMapping:
    return DestinationMapping(endpoint_id="ep_1", target_url=TARGET, **kwargs)


class StatusSequence:
    """Answers requests with the given statuses in order, recording each request"""

    def __init__(self, *statuses: int):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(status)


@pytest.mark.asyncio
class TestForwarder:
    """Test webhook delivery"""

    async def test_success_first_attempt(self, recording_sleep):
        """Test that a 2xx is a single-attempt success"""
        handler = StatusSequence(200)
        breaker = CircuitBreaker()
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        result = await forwarder.forward(make_event(), _mapping())

        assert result.success is True
        assert result.attempts == 1
        assert result.status_code == 200
        assert result.error is None
        assert recording_sleep.delays == []

    async def test_request_shape(self, recording_sleep):
        """Test method, decoded body, header rules and auth on the wire"""
        handler = StatusSequence(200)
        forwarder = Forwarder(mock_client(handler), CircuitBreaker(), sleep=recording_sleep)
        mapping = _mapping(
            auth=BearerAuth(type="bearer", token="t0k"),
            add_headers={"X-Relay": "1"},
            remove_headers=frozenset({"x-signature"}),
        )
        event = make_event(method="put", query=json.dumps({"page": "2"}))

        await forwarder.forward(event, mapping)

        request = handler.requests[0]
        assert request.method == "PUT"
        assert request.content == b'{"ok":true}'
        assert request.url.params["page"] == "2"
        assert request.headers["authorization"] == "Bearer t0k"
        assert request.headers["x-relay"] == "1"
        assert "x-signature" not in request.headers
        assert request.headers["content-type"] == "application/json"

    async def test_binary_body_preserved(self, recording_sleep):
        """Test that decoded bodies are sent byte-for-byte"""
        payload = bytes(range(256))
        handler = StatusSequence(200)
        forwarder = Forwarder(mock_client(handler), CircuitBreaker(), sleep=recording_sleep)

        await forwarder.forward(make_event(body=base64.b64encode(payload).decode()), _mapping())

        assert handler.requests[0].content == payload

    async def test_invalid_base64_sent_verbatim(self, recording_sleep):
        """Test that a body that is not base64 is forwarded as-is"""
        handler = StatusSequence(200)
        forwarder = Forwarder(mock_client(handler), CircuitBreaker(), sleep=recording_sleep)

        result = await forwarder.forward(make_event(body="not base64!"), _mapping())

        assert result.success is True
        assert handler.requests[0].content == b"not base64!"

    async def test_get_sends_no_body(self, recording_sleep):
        """Test that GET requests carry no body"""
        handler = StatusSequence(200)
        forwarder = Forwarder(mock_client(handler), CircuitBreaker(), sleep=recording_sleep)

        await forwarder.forward(make_event(method="GET"), _mapping())

        assert handler.requests[0].content == b""

    async def test_retries_server_errors_then_succeeds(self, recording_sleep):
        """Test 500, 500, 200 with backoff 100ms then 200ms"""
        handler = StatusSequence(500, 500, 200)
        breaker = CircuitBreaker()
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        result = await forwarder.forward(make_event(), _mapping())

        assert result.success is True
        assert result.attempts == 3
        assert recording_sleep.delays == [0.1, 0.2]
        assert breaker.failure_count(TARGET) == 0

    async def test_exhaustion_records_every_failure(self, recording_sleep):
        """Test that an always-503 target fails after max_retries+1 attempts"""
        handler = StatusSequence(503)
        breaker = CircuitBreaker(threshold=100)
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        result = await forwarder.forward(make_event(), _mapping())

        assert result.success is False
        assert result.attempts == 4
        assert result.error == "Server error: 503"
        assert result.error_kind is ErrorKind.SERVER_ERROR
        assert len(handler.requests) == 4
        assert breaker.failure_count(TARGET) == 4
        assert recording_sleep.delays == [0.1, 0.2, 0.4]

    async def test_client_error_not_retried(self, recording_sleep):
        """Test that a 4xx fails immediately and does not count against the breaker"""
        handler = StatusSequence(404)
        breaker = CircuitBreaker()
        breaker.record_failure(TARGET)
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        result = await forwarder.forward(make_event(), _mapping())

        assert result.success is False
        assert result.attempts == 1
        assert result.error == "Client error: 404"
        assert result.error_kind is ErrorKind.CLIENT_ERROR
        assert breaker.failure_count(TARGET) == 0

    async def test_transport_errors_retried(self, recording_sleep):
        """Test that connection failures are retried and recorded as breaker failures"""
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        breaker = CircuitBreaker(threshold=100)
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)
        mapping = _mapping(retry_override=RetryPolicy(max_retries=1, initial_delay_ms=50))

        result = await forwarder.forward(make_event(), mapping)

        assert result.success is False
        assert result.attempts == 2
        assert result.error == "connection refused"
        assert result.error_kind is ErrorKind.TRANSPORT_ERROR
        assert breaker.failure_count(TARGET) == 2
        assert recording_sleep.delays == [0.05]

    async def test_retry_override_zero_retries(self, recording_sleep):
        """Test that maxRetries=0 makes exactly one attempt"""
        handler = StatusSequence(500)
        forwarder = Forwarder(mock_client(handler), CircuitBreaker(), sleep=recording_sleep)

        result = await forwarder.forward(
            make_event(), _mapping(retry_override=RetryPolicy(max_retries=0))
        )

        assert result.attempts == 1
        assert recording_sleep.delays == []

    async def test_open_circuit_skips_delivery(self, recording_sleep):
        """Test that an open circuit fails without any HTTP attempt"""
        handler = StatusSequence(200)
        breaker = CircuitBreaker()
        for _ in range(5):
            breaker.record_failure(TARGET)
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        result = await forwarder.forward(make_event(), _mapping())

        assert result.success is False
        assert result.attempts == 0
        assert result.error == CIRCUIT_OPEN_ERROR
        assert result.error_kind is ErrorKind.CIRCUIT_OPEN
        assert handler.requests == []

    async def test_failures_open_circuit_for_next_event(self, recording_sleep):
        """Test that repeated failing deliveries open the circuit"""
        handler = StatusSequence(500)
        breaker = CircuitBreaker(threshold=5)
        forwarder = Forwarder(mock_client(handler), breaker, sleep=recording_sleep)

        await forwarder.forward(make_event("1-0"), _mapping())
        await forwarder.forward(make_event("2-0"), _mapping())
        result = await forwarder.forward(make_event("3-0"), _mapping())

        assert breaker.is_open(TARGET) is True
        assert result.error == CIRCUIT_OPEN_ERROR
        assert len(handler.requests) == 8
