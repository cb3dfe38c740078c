"""OpenTelemetry initialization helpers for the FieldRAG service."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter

from fieldrag.core.config import settings

logger = logging.getLogger(__name__)
_TRACING_INITIALIZED = False


def setup_tracing(app: Optional[FastAPI] = None) -> None:
    """Configure OpenTelemetry tracers and instrument FastAPI if requested."""

    global _TRACING_INITIALIZED
    if not _TRACING_INITIALIZED:
        resource = Resource.create(
            {
                "service.name": settings.API_TITLE.lower().replace(" ", "-"),
                "service.version": settings.API_VERSION,
                "environment": settings.ENVIRONMENT,
            }
        )

        provider = TracerProvider(resource=resource)
        exporter = _select_exporter()
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

        _TRACING_INITIALIZED = True
        logger.info("OpenTelemetry tracing initialized with %s exporter", exporter.__class__.__name__)

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def _select_exporter() -> SpanExporter:
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        headers = parse_headers(settings.OTEL_EXPORTER_OTLP_HEADERS)
        return OTLPSpanExporter(endpoint=str(settings.OTEL_EXPORTER_OTLP_ENDPOINT), headers=headers or None)
    return ConsoleSpanExporter()


def parse_headers(raw_headers: Optional[str]) -> Dict[str, str]:
    """Parse ``key=value`` pairs separated by commas; malformed items are skipped."""

    if not raw_headers:
        return {}
    pairs = {}
    for item in raw_headers.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        if key.strip():
            pairs[key.strip()] = value.strip()
    return pairs


__all__ = ["get_tracer", "parse_headers", "setup_tracing"]
