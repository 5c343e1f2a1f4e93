import os
import time
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

pipeline_runs_total = Counter(
    "content_pipeline_runs_total",
    "Pipeline runs by terminal status",
    ["status"],
)
pipeline_fact_check_status_total = Counter(
    "content_pipeline_fact_check_status_total",
    "Policy decisions of completed runs",
    ["fact_check_status"],
)
pipeline_llm_calls_total = Counter(
    "content_pipeline_llm_calls_total",
    "LLM calls by kind and outcome",
    ["kind", "outcome"],
)
pipeline_side_effect_failures_total = Counter(
    "content_pipeline_side_effect_failures_total",
    "Side-effect jobs that could not be published",
    ["type"],
)
pipeline_stage_duration_seconds = Histogram(
    "content_pipeline_stage_duration_seconds",
    "Pipeline stage duration seconds",
    ["stage"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120),
)
pipeline_run_duration_seconds = Histogram(
    "content_pipeline_run_duration_seconds",
    "Total pipeline run time",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 30, 60, 120, 300),
)
pipeline_runs_in_flight = Gauge("content_pipeline_runs_in_flight", "Pipeline runs currently in flight")

_TRACING_INITIALIZED = False


def setup_tracing(app) -> None:
    global _TRACING_INITIALIZED
    if _TRACING_INITIALIZED:
        return
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return
    service_name = os.getenv("OTEL_SERVICE_NAME", "content-pipeline")
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    _TRACING_INITIALIZED = True


def get_trace_context() -> dict[str, Optional[str]]:
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if not span_context or not span_context.is_valid:
        return {"trace_id": None, "span_id": None}
    return {
        "trace_id": f"{span_context.trace_id:032x}",
        "span_id": f"{span_context.span_id:016x}",
    }


@contextmanager
def stage_timer(stage: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        pipeline_stage_duration_seconds.labels(stage=stage).observe(time.perf_counter() - start)


def metrics_payload() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
