# src/phasetrace/telemetry/__init__.py
"""Telemetry subsystem: batched delivery of agent execution traces.

Components:
- events: IngestionEvent and the typed body variants
- contexts: TraceContext/SpanContext handles and caller option records
- buffer: EventBuffer, bounded non-blocking event queue
- client: IngestionClient for the Langfuse ingestion API
- retry: RetryingSender, one retry after a fixed delay
- scheduler: DrainScheduler, background and on-demand drains
- tracer: LangfuseTracer façade and NoOpTracer
- factory: create_tracer() from settings, with pluggy backend discovery
- errors: Error taxonomy

Usage:
    from phasetrace.telemetry import (
        CompleteOptions,
        GenerationInput,
        SpanOptions,
        TraceOptions,
        create_tracer,
    )

    tracer = create_tracer(settings)
    trace = tracer.start_trace("task-1", TraceOptions(workflow="plan-implement"))
    span = tracer.start_phase(trace, "plan", SpanOptions(max_iterations=3))
    tracer.record_generation(span, GenerationInput(name="Worker", model="claude"))
    tracer.end_phase(span, "success", 1200)
    tracer.complete_trace(trace, CompleteOptions(status="completed"))
    tracer.close()
"""

from phasetrace.telemetry.buffer import EventBuffer
from phasetrace.telemetry.client import IngestionClient, IngestionResponse
from phasetrace.telemetry.config import TracerConfig
from phasetrace.telemetry.contexts import (
    CompleteOptions,
    GenerationInput,
    SpanContext,
    SpanOptions,
    TraceContext,
    TraceOptions,
)
from phasetrace.telemetry.errors import (
    IngestionError,
    MarshalError,
    PingRejectedError,
    ServerRejectionError,
    TelemetryError,
    TracerConfigurationError,
    TransportError,
)
from phasetrace.telemetry.events import EventType, IngestionEvent
from phasetrace.telemetry.factory import create_tracer
from phasetrace.telemetry.protocols import SecretFetcher, TracerProtocol
from phasetrace.telemetry.scheduler import DrainScheduler
from phasetrace.telemetry.tracer import LangfuseTracer, NoOpTracer

__all__ = [
    "CompleteOptions",
    "DrainScheduler",
    "EventBuffer",
    "EventType",
    "GenerationInput",
    "IngestionClient",
    "IngestionError",
    "IngestionEvent",
    "IngestionResponse",
    "LangfuseTracer",
    "MarshalError",
    "NoOpTracer",
    "PingRejectedError",
    "SecretFetcher",
    "ServerRejectionError",
    "SpanContext",
    "SpanOptions",
    "TelemetryError",
    "TraceContext",
    "TraceOptions",
    "TracerConfig",
    "TracerConfigurationError",
    "TracerProtocol",
    "TransportError",
    "create_tracer",
]
