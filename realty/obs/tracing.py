"""OpenTelemetry wiring for the API process and the payment gateway client."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode

from realty.core.config import Settings

try:  # pragma: no cover - the OTLP exporter ships in the optional "otlp" extra
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
except ModuleNotFoundError:  # pragma: no cover
    OTLPSpanExporter = None  # type: ignore[assignment]

_TRACER_NAME = "realty"


def configure_tracing(settings: Settings) -> bool:
    """Install the global tracer provider described by ``settings``.

    Returns ``False`` when tracing is disabled or a provider for this service
    is already installed.
    """
    if not settings.enable_tracing:
        return False

    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider) and current.resource.attributes.get(SERVICE_NAME) == settings.app_name:
        return False

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: settings.app_name, SERVICE_VERSION: settings.version})
    )
    if settings.otel_exporter_endpoint and OTLPSpanExporter is not None:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_endpoint, insecure=True))
        )
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    LoggingInstrumentor().instrument(set_logging_format=False)
    return True


def instrument_fastapi_app(app: FastAPI) -> None:
    FastAPIInstrumentor().instrument_app(app, excluded_urls="metrics,api/healthz,api/readyz")


def instrument_sqlalchemy_engine(engine: Any) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine)


def current_trace_id() -> str | None:
    """Hex trace id of the active span, if a sampled span is recording."""
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return None
    return format(context.trace_id, "032x")


@contextmanager
def traced(name: str, **attributes: Any) -> Iterator[Span]:
    """Run the block inside a span; exceptions mark the span as errored."""

    with trace.get_tracer(_TRACER_NAME).start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, type(exc).__name__))
            raise


__all__ = [
    "configure_tracing",
    "current_trace_id",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "traced",
]
