"""objstore observability module.

Provides the opt-in OpenTelemetry tracing baseline.
"""

from objstore.observability.tracing import configure_tracing, get_current_trace_id

__all__ = ["configure_tracing", "get_current_trace_id"]
