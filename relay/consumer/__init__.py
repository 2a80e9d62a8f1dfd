"""
Stream consumption for the relay worker
"""

from relay.consumer.stream import StreamConsumer

__all__ = ["StreamConsumer"]
