# src/phasetrace/telemetry/protocols.py
"""Protocol definitions for tracers and their collaborators.

Tracers record the lifecycle of a task through its phases. The agent only
ever depends on TracerProtocol, so a NoOpTracer can stand in whenever
telemetry is disabled or unconfigured.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from phasetrace.telemetry.contexts import (
        CompleteOptions,
        GenerationInput,
        SpanContext,
        SpanOptions,
        TraceContext,
        TraceOptions,
    )


@runtime_checkable
class TracerProtocol(Protocol):
    """Protocol for execution tracers.

    Lifecycle:
        1. Construction: background delivery (if any) starts immediately
        2. Operation: start_trace/start_phase/record_*/end_phase/complete_trace
           queue events and return at once (must not raise, must not block)
        3. Shutdown: stop() delivers what is left; close() also releases resources

    Error handling:
        - Emission methods MUST NOT raise - telemetry is best-effort
        - flush(), stop() and ping() raise on delivery failure
        - stop() and close() MUST be idempotent - safe to call multiple times
    """

    @property
    def base_url(self) -> str:
        """Ingestion endpoint root, empty when not applicable."""
        ...

    def start_trace(self, task_id: str, options: "TraceOptions | None" = None) -> "TraceContext":
        """Open a trace for a task and return its handle."""
        ...

    def start_phase(
        self,
        trace: "TraceContext",
        phase: str,
        options: "SpanOptions | None" = None,
    ) -> "SpanContext":
        """Open a span for one phase instance and return its handle."""
        ...

    def record_generation(self, span: "SpanContext", generation: "GenerationInput") -> None:
        """Record one LLM invocation within a phase."""
        ...

    def record_skipped(self, span: "SpanContext", component: str, reason: str) -> None:
        """Record that a component was skipped within a phase."""
        ...

    def end_phase(self, span: "SpanContext", status: str, duration_ms: int) -> None:
        """Close a phase span with its status and duration."""
        ...

    def complete_trace(self, trace: "TraceContext", options: "CompleteOptions") -> None:
        """Record the final status and token totals of a trace."""
        ...

    def flush(self) -> None:
        """Deliver all buffered events now.

        Raises:
            IngestionError: First batch failure encountered.
        """
        ...

    def stop(self, timeout: float | None = None) -> None:
        """Stop background delivery and flush the remainder.

        Raises:
            IngestionError: If the trailing flush fails.
        """
        ...

    def close(self, timeout: float | None = None) -> None:
        """Stop, then release network resources. Nothing is delivered afterwards.

        Raises:
            IngestionError: If the trailing flush fails.
        """
        ...

    def ping(self) -> None:
        """Verify reachability and credentials with a single probe event.

        Raises:
            IngestionError: If the probe could not be delivered or was rejected.
        """
        ...

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Snapshot of delivery health for monitoring."""
        ...


class SecretFetcher(Protocol):
    """Fetches secret values by path-like key (e.g. a secret manager resource name)."""

    def fetch_secret(self, path: str) -> str:
        """Return the secret stored at path.

        Raises:
            Exception: Any failure; callers treat it as "credentials unavailable".
        """
        ...
