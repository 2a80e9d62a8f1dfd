"""
Dead Letter Queue (DLQ) module
Handles webhooks that could not be delivered
"""

from relay.dlq.router import DeadLetterNotFound, DeadLetterRouter

__all__ = ["DeadLetterRouter", "DeadLetterNotFound"]
