import logging
from typing import Sequence

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
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from edge_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

from .forwarder.route import router

logger = logging.getLogger("uvicorn.error")

# Every path belongs to the proxy, so no generated docs routes
app = FastAPI(title=SERVICE_NAME, docs_url=None, redoc_url=None, openapi_url=None)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app, include_in_schema=False)


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out the ASGI body spans emitted for every
    chunk of a streamed response. A relayed download would otherwise produce
    one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(application: FastAPI) -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        # "key=value,key2=value2", parsed by the exporter
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=OTLP_HEADERS or None,
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )
        logger.info(f"Exporting traces to {OTLP_ENDPOINT}")

    FastAPIInstrumentor.instrument_app(application, excluded_urls="/metrics")


configure_tracing(app)

app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

app.include_router(router)
