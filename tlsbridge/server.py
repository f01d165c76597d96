import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from tlsbridge.proxy import ProxyHandler, QueryMerge, UpstreamDispatcher
from tlsbridge.routes import router
from tlsbridge.upstream import UpstreamConfig
from tlsbridge.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


# Per-chunk body events from the ASGI instrumentation; the proxy span covers them
DROPPED_ASGI_EVENTS = {"http.request", "http.response.body"}


class FilteringSpanExporter(SpanExporter):
    """Drops ASGI body event spans so each proxied request exports as one trace."""

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") in DROPPED_ASGI_EVENTS
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def _parse_otlp_headers(raw: str) -> Optional[Dict[str, str]]:
    """Parse ``key=value,key2=value2`` into exporter headers."""
    headers: Dict[str, str] = {}
    for entry in raw.split(","):
        if "=" in entry:
            key, val = entry.split("=", 1)
            if key.strip() and val.strip():
                headers[key.strip()] = val.strip()
    return headers or None


def configure_tracing(app: FastAPI) -> None:
    """Export spans over OTLP when an endpoint is configured; otherwise spans stay no-ops."""
    if not OTLP_ENDPOINT:
        return
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=_parse_otlp_headers(OTLP_HEADERS),
    )
    trace.get_tracer_provider().add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )
    FastAPIInstrumentor.instrument_app(app)
    logger.info(f"[Startup] Exporting traces to {OTLP_ENDPOINT}")


def create_app(
    config: UpstreamConfig,
    dispatcher: UpstreamDispatcher,
    query_merge: QueryMerge = QueryMerge.PREFER_INBOUND,
) -> FastAPI:
    """
    Build the ASGI app for the proxy.

    This is the single composition root used by the CLI and by tests. Every
    path on the listener belongs to the upstream, so FastAPI's docs and
    openapi routes are switched off.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await dispatcher.start()
        try:
            yield
        finally:
            await dispatcher.aclose()

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.proxy_handler = ProxyHandler(config, dispatcher, query_merge)
    app.include_router(router)
    configure_tracing(app)
    return app
