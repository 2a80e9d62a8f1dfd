"""
OpenTelemetry Tracing Setup for the relay worker
"""

from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

# Global tracer instance
tracer: Optional[trace.Tracer] = None


def init_tracing(
    service_name: str = "webhook-relay",
    enable_console_export: bool = False,
) -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing

    Args:
        service_name: Name of the service for trace identification
        enable_console_export: Whether to export traces to console (dev mode)

    Returns:
        Configured Tracer instance
    """
    global tracer

    resource = Resource(attributes={SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if enable_console_export:
        console_exporter = ConsoleSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(console_exporter))

    trace.set_tracer_provider(provider)
    tracer = trace.get_tracer(__name__)

    return tracer


def trace_event_processing(
    message_id: str,
    webhook_id: str,
    endpoint_id: str,
) -> trace.Span:
    """
    Create a span covering one event's trip through the pipeline

    Args:
        message_id: Stream entry id
        webhook_id: Webhook id assigned at ingestion
        endpoint_id: Endpoint the webhook was received on

    Returns:
        Span for the event (non-recording if tracing is not initialized)
    """
    if tracer is None:
        return trace.INVALID_SPAN

    return tracer.start_span(
        "process_webhook",
        attributes={
            "messaging.message.id": message_id,
            "webhook.id": webhook_id,
            "endpoint.id": endpoint_id,
        },
    )
