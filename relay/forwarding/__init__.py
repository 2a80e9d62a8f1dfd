"""
Forwarding of webhooks to local destinations
"""

from relay.forwarding.circuit_breaker import CircuitBreaker, CircuitState
from relay.forwarding.forwarder import Forwarder, ForwardResult
from relay.forwarding.retry import ErrorKind, calculate_backoff

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "Forwarder",
    "ForwardResult",
    "ErrorKind",
    "calculate_backoff",
]
