"""Optional OpenTelemetry spans; every helper is a no-op without the SDK."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from importlib import import_module
from typing import Any

logger = logging.getLogger("codexbridge.telemetry")

trace: Any | None = None
try:
    trace = import_module("opentelemetry.trace")
    _HAS_OTEL = True
except Exception:
    _HAS_OTEL = False

_TRACER_NAME = "codexbridge"
_ATTRIBUTE_PREFIX = "codexbridge."


def _get_tracer() -> Any:
    """Return OTel tracer or None when not installed."""
    if _HAS_OTEL and trace is not None:
        return trace.get_tracer(_TRACER_NAME)
    return None


def generate_request_id() -> str:
    """Generate a UUID4 request ID for correlating tool calls."""
    return str(uuid.uuid4())


def _prefixed(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    prefixed: dict[str, Any] = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        name = key if key.startswith(_ATTRIBUTE_PREFIX) else _ATTRIBUTE_PREFIX + key
        prefixed[name] = value
    return prefixed


def set_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    """Set prefixed attributes on ``span``; ignores a None span and OTel errors."""
    if span is None:
        return
    for name, value in _prefixed(attributes).items():
        try:
            span.set_attribute(name, value)
        except Exception as exc:
            logger.debug("Failed to set span attribute %s: %s", name, exc)


@contextmanager
def trace_span(
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Generator[Any, None, None]:
    """Context manager that creates an OTel span or no-ops.

    Attribute keys are namespaced under ``codexbridge.`` and None values are
    dropped, since OTel rejects them.

    Yields:
        The span object (or None if OTel not installed)
    """
    try:
        tracer = _get_tracer()
    except Exception as exc:
        logger.debug("OpenTelemetry unavailable for span '%s': %s", name, exc)
        yield None
        return

    if tracer is None:
        yield None
        return

    try:
        span_context = tracer.start_as_current_span(name, attributes=_prefixed(attributes))
        span = span_context.__enter__()
    except Exception as exc:
        logger.debug("OpenTelemetry unavailable for span '%s': %s", name, exc)
        yield None
        return

    try:
        yield span
    except BaseException as inner_exc:
        try:
            span_context.__exit__(type(inner_exc), inner_exc, inner_exc.__traceback__)
        except Exception as exit_exc:
            logger.debug("OpenTelemetry unavailable for span '%s': %s", name, exit_exc)
        raise
    else:
        try:
            span_context.__exit__(None, None, None)
        except Exception as exit_exc:
            logger.debug("OpenTelemetry unavailable for span '%s': %s", name, exit_exc)
