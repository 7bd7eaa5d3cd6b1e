"""OpenTelemetry instrumentation for the framewalk MCP server.

Initializes tracing and exports spans via gRPC OTLP when enabled. FastMCP's
HTTP transport runs on Starlette, so that is what gets instrumented. Spans
opened through :func:`span` go to the no-op tracer until a provider is set.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace

logger = logging.getLogger(__name__)

# Configuration from environment
OTEL_ENABLED = os.getenv("OTEL_ENABLED", "false").lower() == "true"
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "framewalk")
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")

_tracer = trace.get_tracer("framewalk")


@contextmanager
def span(name: str, **attributes: str | int | bool) -> Iterator[trace.Span]:
    """Open a span around one engine operation (snapshot, click)."""
    with _tracer.start_as_current_span(name) as current:
        for key, value in attributes.items():
            current.set_attribute(f"framewalk.{key}", value)
        yield current


def init_telemetry(instrument_http: bool = True) -> bool:
    """Install a tracer provider exporting framewalk spans over gRPC OTLP.

    Args:
        instrument_http: Also instrument Starlette; only meaningful on the
            HTTP transport, where FastMCP serves through it

    Returns:
        True if tracing is active after the call
    """
    if not OTEL_ENABLED:
        logger.debug("OpenTelemetry tracing disabled (OTEL_ENABLED=false)")
        return False

    if not OTEL_EXPORTER_OTLP_ENDPOINT:
        logger.warning("OTEL_ENABLED=true but OTEL_EXPORTER_OTLP_ENDPOINT not set; spans stay no-op")
        return False

    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.semconv.resource import ResourceAttributes
    except ImportError as e:
        logger.error(f"OpenTelemetry SDK not installed: {e}. Install with: pip install 'framewalk[telemetry]'")
        return False

    from . import __version__

    provider = TracerProvider(
        resource=Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: OTEL_SERVICE_NAME,
                ResourceAttributes.SERVICE_VERSION: __version__,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: os.getenv("ENVIRONMENT", "development"),
            }
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
    )
    trace.set_tracer_provider(provider)

    if instrument_http:
        try:
            from opentelemetry.instrumentation.starlette import StarletteInstrumentor
        except ImportError as e:
            logger.warning(f"Starlette instrumentation unavailable: {e}")
        else:
            StarletteInstrumentor().instrument()

    logger.info(f"OpenTelemetry initialized: service={OTEL_SERVICE_NAME}, endpoint={OTEL_EXPORTER_OTLP_ENDPOINT}")
    return True


def shutdown_telemetry() -> None:
    """Flush and shut down the tracer provider, if one was installed."""
    if not OTEL_ENABLED:
        return
    provider = trace.get_tracer_provider()
    shutdown = getattr(provider, "shutdown", None)
    if shutdown is None:
        return
    try:
        shutdown()
    except Exception as e:
        logger.warning(f"Error shutting down OpenTelemetry: {e}")
