# src/phasetrace/telemetry/contexts.py
"""Correlation handles and caller-supplied option records.

Trace hierarchy:

    Task (Trace)
      └── Phase (Span): plan, implement, docs, verify
            ├── Worker (Generation)
            ├── Reviewer (Generation, or Event if skipped)
            └── Judge (Generation, or Event if skipped)

TraceContext and SpanContext are returned to the caller and handed back on
later calls; they are immutable and carry only identifiers.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class TraceContext:
    """Handle for an active trace (task level).

    Attributes:
        trace_id: Correlation key; equal to the task ID for easy lookup
        task_id: Caller-supplied task identifier
        metadata: Workflow and repository recorded at trace start
    """

    trace_id: str
    task_id: str
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SpanContext:
    """Handle for an active span (phase level)."""

    span_id: str
    phase_name: str
    trace_id: str


@dataclass(frozen=True, slots=True)
class TraceOptions:
    """Options for starting a trace."""

    workflow: str = ""
    repository: str = ""
    session_id: str = ""


@dataclass(frozen=True, slots=True)
class SpanOptions:
    """Options for starting a phase span.

    Attributes:
        iteration: Current iteration number; 0 means not iterating
        max_iterations: Iteration budget for the phase
        metadata: Extra string metadata attached to the span
    """

    iteration: int = 0
    max_iterations: int = 0
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CompleteOptions:
    """Final outcome of a trace."""

    status: str  # "completed", "failed", "blocked"
    total_input_tokens: int = 0
    total_output_tokens: int = 0


@dataclass(frozen=True, slots=True)
class GenerationInput:
    """Describes one LLM invocation to record.

    Converted into a generation-create event immediately; not retained.
    """

    name: str  # "Worker", "Reviewer", or "Judge"
    model: str = ""
    input: str = ""
    output: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    status: str = ""  # "completed" or "error"
    duration_ms: int = 0
