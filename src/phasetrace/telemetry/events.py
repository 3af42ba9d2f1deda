# src/phasetrace/telemetry/events.py
"""Ingestion event model.

Every telemetry record travels as an IngestionEvent wrapping one typed body
variant. Bodies carry strongly-typed fields and are flattened to the
Langfuse wire mapping only by to_wire(), at the serialization boundary.

Event categories:
- Trace: trace-create (start, completion update, connectivity probe)
- Span: span-create on phase start, span-update on phase end
- Leaf: generation-create (LLM call), event-create (skipped component)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar, Protocol

from phasetrace.telemetry.clock import format_timestamp


class EventType(StrEnum):
    """Langfuse ingestion event types."""

    TRACE_CREATE = "trace-create"
    SPAN_CREATE = "span-create"
    SPAN_UPDATE = "span-update"
    GENERATION_CREATE = "generation-create"
    EVENT_CREATE = "event-create"


class EventBody(Protocol):
    """A typed ingestion event body bound to exactly one event type."""

    event_type: ClassVar[EventType]

    def to_wire(self) -> dict[str, Any]:
        """Flatten to the JSON mapping sent as the event's ``body``."""
        ...


# =============================================================================
# Trace Bodies
# =============================================================================


@dataclass(frozen=True, slots=True)
class TraceStartBody:
    """Opens a trace for one task.

    Attributes:
        id: Trace ID (the task ID)
        name: Display name, the workflow name
        workflow: Workflow identifier
        repository: Repository the task operates on
        session_id: Agent session identifier
    """

    event_type: ClassVar[EventType] = EventType.TRACE_CREATE

    id: str
    name: str
    workflow: str = ""
    repository: str = ""
    session_id: str = ""

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metadata": {
                "repository": self.repository,
                "session_id": self.session_id,
                "workflow": self.workflow,
            },
        }


@dataclass(frozen=True, slots=True)
class TraceCompleteBody:
    """Updates an existing trace with its final status and token totals.

    Sent as another trace-create; the endpoint upserts by trace ID.
    """

    event_type: ClassVar[EventType] = EventType.TRACE_CREATE

    id: str
    status: str
    total_input_tokens: int = 0
    total_output_tokens: int = 0

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "metadata": {
                "status": self.status,
                "total_input_tokens": self.total_input_tokens,
                "total_output_tokens": self.total_output_tokens,
            },
        }


@dataclass(frozen=True, slots=True)
class ConnectivityProbeBody:
    """Minimal trace used to check credentials and reachability."""

    event_type: ClassVar[EventType] = EventType.TRACE_CREATE

    id: str
    name: str

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


# =============================================================================
# Span Bodies
# =============================================================================


@dataclass(frozen=True, slots=True)
class SpanCreateBody:
    """Opens a span for one phase instance within a trace.

    Attributes:
        id: Freshly generated span ID
        trace_id: Owning trace
        name: Phase name
        start_time: When the phase started
        max_iterations: Iteration budget for the phase
        iteration: Current iteration; omitted from the wire when zero
        extra_metadata: Caller-supplied metadata merged over the above
    """

    event_type: ClassVar[EventType] = EventType.SPAN_CREATE

    id: str
    trace_id: str
    name: str
    start_time: datetime
    max_iterations: int = 0
    iteration: int = 0
    extra_metadata: Mapping[str, str] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"max_iterations": self.max_iterations}
        if self.iteration > 0:
            metadata["iteration"] = self.iteration
        metadata.update(self.extra_metadata)
        return {
            "id": self.id,
            "traceId": self.trace_id,
            "name": self.name,
            "metadata": metadata,
            "startTime": format_timestamp(self.start_time),
        }


@dataclass(frozen=True, slots=True)
class SpanUpdateBody:
    """Closes a span with its outcome."""

    event_type: ClassVar[EventType] = EventType.SPAN_UPDATE

    id: str
    trace_id: str
    status: str
    duration_ms: int
    end_time: datetime

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "traceId": self.trace_id,
            "metadata": {
                "status": self.status,
                "duration_ms": self.duration_ms,
            },
            "endTime": format_timestamp(self.end_time),
        }


# =============================================================================
# Leaf Bodies
# =============================================================================


@dataclass(frozen=True, slots=True)
class GenerationCreateBody:
    """Records one LLM invocation, parented to a phase span.

    Output text is only sent when non-empty.
    """

    event_type: ClassVar[EventType] = EventType.GENERATION_CREATE

    id: str
    trace_id: str
    parent_observation_id: str
    name: str
    model: str
    input: str
    input_tokens: int
    output_tokens: int
    status: str
    duration_ms: int
    start_time: datetime
    output: str = ""

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "id": self.id,
            "traceId": self.trace_id,
            "parentObservationId": self.parent_observation_id,
            "name": self.name,
            "model": self.model,
            "input": self.input,
            "usage": {
                "input": self.input_tokens,
                "output": self.output_tokens,
            },
            "metadata": {
                "status": self.status,
                "duration_ms": self.duration_ms,
            },
            "startTime": format_timestamp(self.start_time),
        }
        if self.output:
            wire["output"] = self.output
        return wire


@dataclass(frozen=True, slots=True)
class EventCreateBody:
    """Records that a component was skipped within a phase."""

    event_type: ClassVar[EventType] = EventType.EVENT_CREATE

    id: str
    trace_id: str
    parent_observation_id: str
    name: str
    skip_reason: str
    start_time: datetime

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "traceId": self.trace_id,
            "parentObservationId": self.parent_observation_id,
            "name": self.name,
            "metadata": {"skip_reason": self.skip_reason},
            "startTime": format_timestamp(self.start_time),
        }


# =============================================================================
# Envelope
# =============================================================================


@dataclass(frozen=True, slots=True)
class IngestionEvent:
    """One entry in an ingestion batch.

    The ID and timestamp are assigned when the event is enqueued, so the
    same body enqueued twice yields two distinct events.

    Attributes:
        id: Unique event ID (UUID4)
        timestamp: UTC enqueue time
        body: Typed body; determines the event type
    """

    id: str
    timestamp: datetime
    body: EventBody

    @property
    def type(self) -> EventType:
        return self.body.event_type

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": str(self.type),
            "timestamp": format_timestamp(self.timestamp),
            "body": self.body.to_wire(),
        }
