from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.semconv.resource import ResourceAttributes
from opentelemetry.trace import Status, StatusCode

from dorfladen_api.core.settings import settings

_CONFIGURED = False
_TRACER_NAME = "dorfladen_api.ledger"


def _parse_headers(raw: str | None) -> Dict[str, str] | None:
    if not raw:
        return None
    headers: Dict[str, str] = {}
    for pair in raw.split(","):
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers or None


def _build_exporter() -> SpanExporter | None:
    if settings.otel_exporter_otlp_endpoint:
        return OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=_parse_headers(settings.otel_exporter_otlp_headers),
        )
    if settings.otel_console_exporter:
        return ConsoleSpanExporter()
    return None


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str,
    environment: str,
) -> None:
    """Configure OpenTelemetry tracing + log correlation for the FastAPI app."""

    global _CONFIGURED

    if not settings.tracing_enabled:
        return

    if not _CONFIGURED:
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: service_name,
                ResourceAttributes.SERVICE_VERSION: service_version,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
            }
        )
        tracer_provider = TracerProvider(resource=resource)
        exporter = _build_exporter()
        if exporter is not None:
            tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(tracer_provider)
        LoggingInstrumentor().instrument(set_logging_format=False)
        _CONFIGURED = True
    else:
        tracer_provider = trace.get_tracer_provider()

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)


@contextmanager
def ledger_span(operation: str, **attributes: Any) -> Iterator[trace.Span]:
    """Span around one ledger mutation; ledger errors mark the span as failed."""

    tracer = trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(f"ledger.{operation}", record_exception=False) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"ledger.{key}", str(value))
        try:
            yield span
        except Exception as error:
            code = getattr(error, "code", type(error).__name__)
            span.set_attribute("ledger.error_code", code)
            span.set_status(Status(StatusCode.ERROR, str(error)))
            raise


__all__ = ["configure_tracing", "ledger_span"]
