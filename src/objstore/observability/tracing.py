"""OpenTelemetry setup for objstore.

Store operations are always wrapped by ``objstore.storage.tracing``; the
wrapper does nothing until OBJSTORE_OTEL_ENABLED is set and
``configure_tracing()`` has installed a tracer provider.

Environment Variables:
    OBJSTORE_OTEL_ENABLED: "1" turns tracing on (default: off)
    OBJSTORE_REQUIRE_OTEL: "1" makes setup failures fatal
    OBJSTORE_OTEL_SERVICE_NAME: service.name resource attribute (default: "objstore")
    OBJSTORE_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    OBJSTORE_OTEL_EXPORTER_OTLP_ENDPOINT: collector endpoint (optional)
    OBJSTORE_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    OBJSTORE_OTEL_RESOURCE_ATTRS: extra resource attributes as k=v,k=v
    OBJSTORE_OTEL_TEST_CAPTURE: "1" records spans in memory for tests
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanProcessor

logger = logging.getLogger(__name__)

OBJSTORE_OTEL_ENABLED_ENV = "OBJSTORE_OTEL_ENABLED"
OBJSTORE_REQUIRE_OTEL_ENV = "OBJSTORE_REQUIRE_OTEL"
OBJSTORE_OTEL_TEST_CAPTURE_ENV = "OBJSTORE_OTEL_TEST_CAPTURE"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class TracingConfigError(Exception):
    """Tracing could not be set up while OBJSTORE_REQUIRE_OTEL=1."""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    value = os.environ.get(key, "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def _parse_resource_attrs(raw: str) -> dict[str, str]:
    """Parse ``k=v,k=v`` into a dict, skipping malformed entries."""
    attrs: dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            attrs[key.strip()] = value.strip()
    return attrs


def is_tracing_enabled() -> bool:
    return get_env_bool(OBJSTORE_OTEL_ENABLED_ENV)


@dataclass(frozen=True)
class TracingSettings:
    """Tracing options resolved from OBJSTORE_OTEL_* variables."""

    service_name: str = "objstore"
    exporter: str = "otlp"
    otlp_endpoint: str | None = None
    otlp_protocol: str = "grpc"
    resource_attrs: dict[str, str] = field(default_factory=dict)
    test_capture: bool = False

    @classmethod
    def from_env(cls) -> TracingSettings:
        env = os.environ
        return cls(
            service_name=env.get("OBJSTORE_OTEL_SERVICE_NAME", "").strip() or "objstore",
            exporter=env.get("OBJSTORE_OTEL_EXPORTER", "").strip().lower() or "otlp",
            otlp_endpoint=env.get("OBJSTORE_OTEL_EXPORTER_OTLP_ENDPOINT", "").strip() or None,
            otlp_protocol=(
                env.get("OBJSTORE_OTEL_EXPORTER_OTLP_PROTOCOL", "").strip().lower() or "grpc"
            ),
            resource_attrs=_parse_resource_attrs(env.get("OBJSTORE_OTEL_RESOURCE_ATTRS", "")),
            test_capture=get_env_bool(OBJSTORE_OTEL_TEST_CAPTURE_ENV),
        )


class _TracingState:
    """Process-wide tracer provider bookkeeping."""

    def __init__(self) -> None:
        self.provider: TracerProvider | None = None
        self.memory_exporter: Any = None  # InMemorySpanExporter under test capture


_state = _TracingState()


def _span_processor(settings: TracingSettings) -> SpanProcessor:
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    if settings.test_capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _state.memory_exporter = InMemorySpanExporter()
        return SimpleSpanProcessor(_state.memory_exporter)

    if settings.exporter == "console":
        return SimpleSpanProcessor(ConsoleSpanExporter())

    kwargs: dict[str, Any] = {}
    if settings.otlp_endpoint:
        kwargs["endpoint"] = settings.otlp_endpoint
    if settings.otlp_protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    else:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
    return BatchSpanProcessor(OTLPSpanExporter(**kwargs))


def configure_tracing() -> bool:
    """Install the objstore tracer provider if tracing is enabled.

    Safe to call repeatedly. OpenTelemetry allows one global provider per
    process, so later calls reuse the first one.

    Returns:
        True if spans will be recorded.

    Raises:
        TracingConfigError: If setup fails and OBJSTORE_REQUIRE_OTEL=1.
    """
    if not is_tracing_enabled():
        logger.debug("OpenTelemetry tracing disabled (%s not set)", OBJSTORE_OTEL_ENABLED_ENV)
        return False

    if _state.provider is not None:
        return True

    settings = TracingSettings.from_env()
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider

        attrs = {"service.name": settings.service_name, **settings.resource_attrs}
        resource = Resource.create(attrs)
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(_span_processor(settings))
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if get_env_bool(OBJSTORE_REQUIRE_OTEL_ENV):
            raise TracingConfigError(f"OpenTelemetry tracing required but unavailable: {e}") from e
        return False

    _state.provider = provider
    logger.info(
        "OpenTelemetry tracing configured: service=%s exporter=%s",
        settings.service_name,
        "in-memory" if settings.test_capture else settings.exporter,
    )
    return True


def get_current_trace_id() -> str | None:
    """Return the active trace ID as 32 hex digits, or None outside a span."""
    from opentelemetry import trace

    ctx = trace.get_current_span().get_span_context()
    return format(ctx.trace_id, "032x") if ctx.is_valid else None


def get_test_spans() -> list[ReadableSpan]:
    """Return spans recorded under OBJSTORE_OTEL_TEST_CAPTURE=1."""
    if _state.memory_exporter is None:
        return []
    return list(_state.memory_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _state.memory_exporter is not None:
        _state.memory_exporter.clear()


def reset_tracing() -> None:
    """Drop recorded test spans.

    The installed provider stays: OpenTelemetry cannot replace it.
    """
    clear_test_spans()
