"""OpenTelemetry initialization, request spans, and trace header propagation."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.propagate import inject
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

logger = logging.getLogger(__name__)

_TRACER_NAME = "folio"

# Guard flag: True once the global TracerProvider has been installed.
_tracer_provider_installed: bool = False


def init_telemetry(service_name: str = "folio") -> trace.Tracer:
    """Initialize OpenTelemetry tracing for the process.

    When OTEL_EXPORTER_OTLP_ENDPOINT is set, configures a real TracerProvider
    with an OTLP gRPC exporter on the first call (requires the ``otlp``
    extra).  Otherwise the global no-op provider is left in place.

    Args:
        service_name: Value for the ``service.name`` resource attribute.

    Returns:
        A Tracer instance (real or no-op depending on config)
    """
    global _tracer_provider_installed

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op tracer")
        return trace.get_tracer(_TRACER_NAME)

    if _tracer_provider_installed:
        return trace.get_tracer(_TRACER_NAME)

    # Import exporter only when needed
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    _tracer_provider_installed = True
    logger.info("Telemetry initialized: endpoint=%s", endpoint)
    return trace.get_tracer(_TRACER_NAME)


def get_tracer() -> trace.Tracer:
    """Get the folio tracer from the current provider."""
    return trace.get_tracer(_TRACER_NAME)


class request_span:
    """Span around one REST call made on behalf of a list view.

    Usage::

        with request_span("fetch", resource="posts") as span:
            response = await client.get(...)
            span.set_attribute("http.status_code", response.status_code)

    The span is named ``folio.<operation>``.  Exceptions are recorded on the
    span and its status set to ERROR before the exception is re-raised.
    """

    def __init__(self, operation: str, *, resource: str) -> None:
        self._operation = operation
        self._resource = resource
        self._span: trace.Span | None = None
        self._token: object | None = None

    def __enter__(self) -> trace.Span:
        self._span = get_tracer().start_span(f"folio.{self._operation}")
        self._span.set_attribute("folio.resource", self._resource)
        self._token = trace.context_api.attach(trace.set_span_in_context(self._span))
        return self._span

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._span is None:
            return
        if exc_val is not None:
            self._span.set_status(trace.StatusCode.ERROR, str(exc_val))
            self._span.record_exception(exc_val)
        self._span.end()
        if self._token is not None:
            trace.context_api.detach(self._token)


def inject_trace_context() -> dict[str, str]:
    """Return W3C trace headers (``traceparent``) for the current span.

    Empty when there is no active recording span.
    """
    carrier: dict[str, str] = {}
    inject(carrier)
    return carrier
