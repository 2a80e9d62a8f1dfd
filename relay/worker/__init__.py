"""
Concurrent processing of claimed webhook events
"""

from relay.worker.pool import WorkerPool
from relay.worker.processor import EventProcessor, ProcessingOutcome

__all__ = ["WorkerPool", "EventProcessor", "ProcessingOutcome"]
