"""
OpenTelemetry Integration Module

Provides tracing and metrics for RemoteControl calls:
- tracer: span creation and trace context propagation into outgoing HTTP headers
- metrics: request counters and latency histograms

Nothing is exported unless the host application configures a provider with
setup_tracer / setup_metrics; otherwise the OpenTelemetry API is a no-op.
"""

from .tracer import (
    setup_tracer,
    inject_trace_context,
    create_span
)
from .metrics import (
    setup_metrics,
    increment_counter,
    record_latency
)

__all__ = [
    "setup_tracer",
    "inject_trace_context",
    "create_span",
    "setup_metrics",
    "increment_counter",
    "record_latency"
]
