"""Optional OpenTelemetry tracing.

Tracing switches on only when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set and the
``telemetry`` extra is installed. Otherwise every helper here hands out
no-op spans, so callers never check whether tracing is live before using one.
"""

import logging
import os
from typing import Any

from . import __version__

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "management-inclination"

_tracer = None
_provider = None
_telemetry_enabled = False


def is_telemetry_enabled() -> bool:
    return _telemetry_enabled


def setup_telemetry(endpoint: str | None = None, service_name: str | None = None) -> bool:
    """
    Configure an OTLP span exporter and instrument httpx.

    Args:
        endpoint: OTLP gRPC endpoint (defaults to OTEL_EXPORTER_OTLP_ENDPOINT)
        service_name: Resource service name (defaults to OTEL_SERVICE_NAME)

    Returns:
        True if tracing is now enabled
    """
    global _tracer, _provider, _telemetry_enabled

    if _telemetry_enabled:
        return True

    endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    service_name = service_name or os.getenv("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME)
    if not endpoint:
        logger.info("Tracing disabled. Reason: OTEL_EXPORTER_OTLP_ENDPOINT not set")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as e:
        logger.warning("Tracing disabled. Reason: telemetry extra not installed, Error: %s", e)
        return False

    try:
        provider = TracerProvider(resource=Resource.create({
            "service.name": service_name,
            "service.version": __version__,
        }))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.warning("Tracing disabled. Reason: exporter setup failed, Error: %s", e)
        return False

    _provider = provider
    _tracer = trace.get_tracer(__name__)
    _telemetry_enabled = True
    logger.info("Tracing enabled. Endpoint: %s, Service: %s", endpoint, service_name)

    try:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor().instrument()
    except ImportError:
        logger.warning("httpx instrumentation package not available")

    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and turn tracing off."""
    global _tracer, _provider, _telemetry_enabled

    if _provider is not None:
        _provider.shutdown()
    _tracer = None
    _provider = None
    _telemetry_enabled = False


def get_tracer() -> Any:
    """The configured tracer, or a no-op tracer when tracing is off."""
    if _tracer is not None:
        return _tracer
    return _NoOpTracer()


def mark_span_error(span: Any, message: str) -> None:
    if not _telemetry_enabled:
        return

    from opentelemetry.trace import Status, StatusCode
    span.set_status(Status(StatusCode.ERROR, message))


class _NoOpSpan:

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def end(self) -> None:
        pass

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:

    def start_span(self, name: str, **kwargs: Any) -> _NoOpSpan:
        return _NoOpSpan()

    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:
        return _NoOpSpan()
