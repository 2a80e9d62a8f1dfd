"""
Retry Logic with Exponential Backoff
Delay schedule and response classification for forwarding attempts
"""

from enum import Enum
from typing import Optional

from relay.models.retry_policy import RetryPolicy


class ErrorKind(str, Enum):
    """Why a delivery did not succeed"""

    CIRCUIT_OPEN = "circuit_open"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"
    UNEXPECTED = "unexpected"


def calculate_backoff(attempt: int, policy: RetryPolicy) -> float:
    """
    Calculate the delay before a retry attempt

    Args:
        attempt: Attempt number (0 is the initial attempt and never waits)
        policy: Retry policy

    Returns:
        Delay in seconds: min(initial * factor^(attempt-1), max) / 1000
    """
    if attempt <= 0:
        return 0.0

    # Exponential backoff: initial_delay * (factor ^ (attempt - 1))
    delay_ms = policy.initial_delay_ms * (policy.backoff_factor ** (attempt - 1))

    # Cap at max_delay
    delay_ms = min(delay_ms, policy.max_delay_ms)

    return max(0.0, delay_ms) / 1000.0


def classify_status(status_code: int) -> Optional[ErrorKind]:
    """
    Classify an HTTP response status

    Returns:
        None for 2xx, CLIENT_ERROR for 4xx (never retried), SERVER_ERROR
        for anything else (retried)
    """
    if 200 <= status_code < 300:
        return None
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    return ErrorKind.SERVER_ERROR
