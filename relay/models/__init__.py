"""
Data models for the relay worker
"""

from relay.models.dead_letter_event import DeadLetterEvent
from relay.models.destination import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    DestinationMapping,
    MappingError,
    NoAuth,
    SkipReason,
)
from relay.models.event import WebhookEvent
from relay.models.retry_policy import DEFAULT_RETRY_POLICY, RetryPolicy

__all__ = [
    "WebhookEvent",
    "DestinationMapping",
    "MappingError",
    "SkipReason",
    "AuthConfig",
    "NoAuth",
    "BasicAuth",
    "BearerAuth",
    "ApiKeyAuth",
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "DeadLetterEvent",
]
