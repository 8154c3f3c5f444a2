"""
OpenTelemetry Trace Context Management

Creates spans around RemoteControl calls and propagates the active trace
context to the endpoint as W3C ``traceparent`` headers.
"""

import logging
from typing import Dict, Any, Optional

from opentelemetry import trace, propagate
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ALWAYS_ON
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)


def setup_tracer(service_name: str, otlp_endpoint: str = "localhost:4317"):
    """Configure OpenTelemetry tracer
    
    Args:
        service_name: Service name
        otlp_endpoint: OTLP receiver address

    Returns:
        Tracer for the service
    """
    provider = TracerProvider(sampler=ALWAYS_ON)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    # Set global TracerProvider
    trace.set_tracer_provider(provider)

    tracer = trace.get_tracer(service_name)

    logger.info(f"OpenTelemetry trace configured, service name: {service_name}, OTLP endpoint: {otlp_endpoint}")

    return tracer


def inject_trace_context(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Inject the current trace context into a dictionary of HTTP headers
    
    Args:
        headers: Headers to extend; a new dictionary is created when omitted
        
    Returns:
        Dict[str, str]: The headers, with ``traceparent`` (and ``tracestate``) set
        when a span is active
    """
    carrier = dict(headers or {})
    propagate.inject(carrier)
    return carrier


def create_span(name: str, attributes: Dict[str, Any] = None):
    """Create new client span
    
    Args:
        name: Span name
        attributes: Span attributes
        
    Returns:
        Context manager yielding the span
    """
    tracer = trace.get_tracer(__name__)
    return tracer.start_as_current_span(
        name,
        attributes=attributes or {},
        kind=trace.SpanKind.CLIENT,
    )
