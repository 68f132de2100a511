from llama_proxy.vars import SERVICE_NAME, OTLP_ENDPOINT, OTLP_HEADERS
from fastapi import FastAPI
from .routes import router
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider, ReadableSpan
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from typing import Sequence

# The catch-all route owns every path, so no docs or schema endpoints
app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)


ASGI_BODY_EVENT = "http.response.body"


def is_relay_chunk_span(span: ReadableSpan) -> bool:
    """True for the ASGI span emitted per chunk of a relayed upstream body."""
    attributes = span.attributes or {}
    return attributes.get("asgi.event.type") == ASGI_BODY_EVENT


class RelaySpanExporter(SpanExporter):
    """
    Exports proxy spans to OTLP, leaving out the one-per-chunk ASGI spans
    a streamed relay produces.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        request_spans = [span for span in spans if not is_relay_chunk_span(span)]
        if not request_spans:
            return SpanExportResult.SUCCESS
        return self.exporter.export(request_spans)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(RelaySpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app)

app.include_router(router)
