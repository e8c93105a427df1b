"""OpenTelemetry spans for store operations.

Span attributes are restricted to safe values:
    - never raw object names or prefixes (they may embed identifiers or
      secrets); a SHA256 of the name is emitted for correlation
    - never bucket paths or absolute filesystem paths
"""

from __future__ import annotations

import functools
import hashlib
from collections.abc import Callable
from typing import Any, TypeVar, cast

from objstore.observability.tracing import is_tracing_enabled

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "objstore.object_store"


def name_sha256(name: str) -> str:
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace a store method with OpenTelemetry.

    The first positional argument after ``self`` (object name or listing
    prefix) is hashed into ``objstore.object_name_sha256``.

    Args:
        operation: Operation name (e.g., "write", "open", "walk").
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, *args, **kwargs)

            from opentelemetry import trace

            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(f"{TRACER_NAME}.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if args and isinstance(args[0], str):
                    span.set_attribute("objstore.object_name_sha256", name_sha256(args[0]))

                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    if operation == "write" and isinstance(result, bool):
        span.set_attribute("objstore.object_written", result)
    elif operation == "exists" and isinstance(result, bool):
        span.set_attribute("objstore.object_exists", result)
    elif operation == "list" and isinstance(result, list):
        span.set_attribute("objstore.object_count", len(result))
    elif operation in ("walk", "walk_from") and isinstance(result, int):
        span.set_attribute("objstore.walk_visit_count", result)
