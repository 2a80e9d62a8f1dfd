"""
Event Processor
Runs one claimed event through resolve -> forward -> ack / dead-letter
"""

from enum import Enum

import structlog

from relay.consumer.stream import StreamConsumer
from relay.destinations.resolver import DestinationResolver
from relay.dlq.router import DeadLetterRouter
from relay.forwarding.forwarder import Forwarder, ForwardResult
from relay.forwarding.retry import ErrorKind
from relay.models.destination import SkipReason
from relay.models.event import WebhookEvent
from relay.observability.metrics import RelayCounters, record_skipped
from relay.observability.tracing import trace_event_processing

logger = structlog.get_logger(__name__)


class ProcessingOutcome(str, Enum):
    """Terminal state of an event; every outcome acknowledges the event once"""

    SKIPPED = "skipped"
    FORWARDED = "forwarded"
    DEAD_LETTERED = "dead_lettered"


class EventProcessor:
    """
    Per-event pipeline

    Received -> Resolving -> (Skipped | CircuitBlocked | Delivering) ->
    (acked after success | acked after dead-lettering). Errors raised while
    resolving or delivering are dead-lettered; errors from the ack or DLQ
    writes themselves propagate, leaving the entry pending for reclaim.
    """

    def __init__(
        self,
        consumer: StreamConsumer,
        resolver: DestinationResolver,
        forwarder: Forwarder,
        dead_letters: DeadLetterRouter,
        counters: RelayCounters,
    ):
        self._consumer = consumer
        self._resolver = resolver
        self._forwarder = forwarder
        self._dead_letters = dead_letters
        self._counters = counters

    async def process(self, event: WebhookEvent) -> ProcessingOutcome:
        """
        Process a single event to a terminal state

        Args:
            event: Claimed event

        Returns:
            The terminal outcome
        """
        log = logger.bind(
            message_id=event.message_id,
            webhook_id=event.webhook_id,
            endpoint_id=event.endpoint_id,
        )
        log.info("Processing webhook", platform=event.platform)

        span = trace_event_processing(event.message_id, event.webhook_id, event.endpoint_id)
        try:
            outcome = await self._process(event, log)
            span.set_attribute("relay.outcome", outcome.value)
            return outcome
        finally:
            span.end()

    async def _process(self, event: WebhookEvent, log) -> ProcessingOutcome:
        try:
            mapping = await self._resolver.resolve(event.endpoint_id)
            reason = SkipReason.NO_MAPPING if mapping is None else mapping.skip_reason()

            if reason is not None:
                log.warning("Webhook not forwarded", reason=reason.value)
                await self._consumer.ack(event.message_id)
                record_skipped(reason.value)
                return ProcessingOutcome.SKIPPED

            result = await self._forwarder.forward(event, mapping)

        except Exception as e:
            log.exception("Error processing webhook")
            result = ForwardResult(
                success=False,
                error=str(e) or type(e).__name__,
                error_kind=ErrorKind.UNEXPECTED,
            )

        if result.success:
            await self._consumer.ack(event.message_id)
            await self._counters.record_forwarded()
            return ProcessingOutcome.FORWARDED

        error_kind = result.error_kind or ErrorKind.UNEXPECTED
        await self._dead_letters.send(event, result.error or "Unknown error")
        await self._consumer.ack(event.message_id)
        await self._counters.record_failed(error_kind.value)
        return ProcessingOutcome.DEAD_LETTERED
