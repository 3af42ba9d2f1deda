# src/phasetrace/telemetry/tracer.py
"""Tracer façade: the public telemetry API used by the agent.

LangfuseTracer turns each call into a typed event body and hands it to the
EventBuffer; delivery happens on the DrainScheduler's background thread or
on an explicit flush()/stop(). NoOpTracer offers the same surface and does
nothing; it is used when telemetry is disabled or unconfigured.

Per-trace state machine:

    unstarted -> started (trace-create)
              -> [phase started (span-create) -> phase ended (span-update)]*
              -> completed (trace-create update with status + token totals)

Phases are independent and may overlap. Generations and skipped-component
events are leaves parented to a phase span; they do not change state.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
import structlog

from phasetrace.telemetry.buffer import EventBuffer
from phasetrace.telemetry.client import IngestionClient
from phasetrace.telemetry.clock import DEFAULT_CLOCK, Clock
from phasetrace.telemetry.config import TracerConfig
from phasetrace.telemetry.contexts import (
    CompleteOptions,
    GenerationInput,
    SpanContext,
    SpanOptions,
    TraceContext,
    TraceOptions,
)
from phasetrace.telemetry.events import (
    EventCreateBody,
    GenerationCreateBody,
    SpanCreateBody,
    SpanUpdateBody,
    TraceCompleteBody,
    TraceStartBody,
)
from phasetrace.telemetry.retry import RetryingSender
from phasetrace.telemetry.scheduler import DrainScheduler

logger = structlog.get_logger(__name__)


class LangfuseTracer:
    """Sends trace/span/generation events to the Langfuse ingestion API.

    Events are buffered in a bounded queue and flushed in batches every
    flush_interval seconds, on flush(), and on stop(). The background
    thread starts at construction.

    Thread Safety:
        All emission methods are safe to call from any thread and never
        block on the network. flush() may run concurrently with the
        background drain; the two are serialized.

    Example:
        >>> tracer = LangfuseTracer(TracerConfig(public_key="pk", secret_key="sk"))
        >>> trace = tracer.start_trace("task-1", TraceOptions(workflow="plan-implement"))
        >>> span = tracer.start_phase(trace, "plan", SpanOptions(max_iterations=3))
        >>> tracer.end_phase(span, "success", 1200)
        >>> tracer.complete_trace(trace, CompleteOptions(status="completed"))
        >>> tracer.close()
    """

    _name = "langfuse"

    def __init__(
        self,
        config: TracerConfig,
        *,
        clock: Clock | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the tracer and start background delivery.

        Args:
            config: Resolved tracer configuration
            clock: Source of UTC timestamps (default: system clock)
            transport: Optional httpx transport override for the client
        """
        self._config = config
        self._clock = clock or DEFAULT_CLOCK
        self._client = IngestionClient(
            base_url=config.base_url,
            public_key=config.public_key,
            secret_key=config.secret_key,
            timeout=config.request_timeout,
            clock=self._clock,
            transport=transport,
        )
        self._buffer = EventBuffer(config.buffer_capacity, clock=self._clock)
        self._sender = RetryingSender(self._client, retry_delay=config.retry_delay)
        self._scheduler = DrainScheduler(
            self._buffer,
            self._sender.send,
            flush_interval=config.flush_interval,
            max_batch_size=config.max_batch_size,
        )
        self._log_context = {"backend": self._name, "base_url": self._client.base_url}
        self._scheduler.start()

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return self._client.base_url

    # =========================================================================
    # Emission
    # =========================================================================

    def start_trace(self, task_id: str, options: TraceOptions | None = None) -> TraceContext:
        """Create a trace for a task. The task ID doubles as the trace ID."""
        options = options or TraceOptions()
        trace_id = task_id

        self._buffer.enqueue(
            TraceStartBody(
                id=trace_id,
                name=options.workflow,
                workflow=options.workflow,
                repository=options.repository,
                session_id=options.session_id,
            )
        )

        return TraceContext(
            trace_id=trace_id,
            task_id=task_id,
            metadata={
                "workflow": options.workflow,
                "repository": options.repository,
            },
        )

    def start_phase(
        self,
        trace: TraceContext,
        phase: str,
        options: SpanOptions | None = None,
    ) -> SpanContext:
        """Create a span for one phase instance with a fresh span ID."""
        options = options or SpanOptions()
        span_id = str(uuid.uuid4())

        self._buffer.enqueue(
            SpanCreateBody(
                id=span_id,
                trace_id=trace.trace_id,
                name=phase,
                start_time=self._clock.now(),
                max_iterations=options.max_iterations,
                iteration=options.iteration,
                extra_metadata=dict(options.metadata),
            )
        )

        return SpanContext(span_id=span_id, phase_name=phase, trace_id=trace.trace_id)

    def record_generation(self, span: SpanContext, generation: GenerationInput) -> None:
        """Record an LLM invocation as a generation under the phase span."""
        self._buffer.enqueue(
            GenerationCreateBody(
                id=str(uuid.uuid4()),
                trace_id=span.trace_id,
                parent_observation_id=span.span_id,
                name=generation.name,
                model=generation.model,
                input=generation.input,
                output=generation.output,
                input_tokens=generation.input_tokens,
                output_tokens=generation.output_tokens,
                status=generation.status,
                duration_ms=generation.duration_ms,
                start_time=self._clock.now(),
            )
        )

    def record_skipped(self, span: SpanContext, component: str, reason: str) -> None:
        """Record a skipped component as an event under the phase span."""
        self._buffer.enqueue(
            EventCreateBody(
                id=str(uuid.uuid4()),
                trace_id=span.trace_id,
                parent_observation_id=span.span_id,
                name=f"{component} Skipped",
                skip_reason=reason,
                start_time=self._clock.now(),
            )
        )

    def end_phase(self, span: SpanContext, status: str, duration_ms: int) -> None:
        """Close a phase span with a status and duration."""
        self._buffer.enqueue(
            SpanUpdateBody(
                id=span.span_id,
                trace_id=span.trace_id,
                status=status,
                duration_ms=duration_ms,
                end_time=self._clock.now(),
            )
        )

    def complete_trace(self, trace: TraceContext, options: CompleteOptions) -> None:
        """Update the trace with its final status and token totals.

        Calling this again simply emits another update.
        """
        self._buffer.enqueue(
            TraceCompleteBody(
                id=trace.trace_id,
                status=options.status,
                total_input_tokens=options.total_input_tokens,
                total_output_tokens=options.total_output_tokens,
            )
        )

    # =========================================================================
    # Delivery
    # =========================================================================

    def flush(self) -> None:
        """Send all buffered events now and wait for completion.

        Safe to call concurrently with the background drain.

        Raises:
            IngestionError: First batch failure encountered.
        """
        self._scheduler.drain()

    def stop(self, timeout: float | None = None) -> None:
        """Stop background delivery and flush remaining events.

        Shutdown sequence:
        1. Signal the drain thread (first call only)
        2. The thread runs a final drain and exits; wait for it
        3. Flush once more to catch events enqueued after that final drain
        4. Log final health metrics (first call only)

        Safe to call multiple times and from several threads at once. Later
        calls still flush, so events enqueued after an earlier stop() are
        delivered. The HTTP client stays open; close() releases it.

        Args:
            timeout: Maximum seconds to wait for the drain thread. It bounds
                the join only; a send already in flight is not interrupted.
                If the thread is still draining when it expires, the trailing
                flush is skipped, since it would wait on the same drain.

        Raises:
            IngestionError: If the trailing flush fails.
        """
        claimed = self._scheduler.stop(timeout=timeout)
        try:
            if not self._scheduler.is_running:
                self.flush()
        finally:
            if claimed:
                logger.info("Tracer stopped", **self._log_context, **self.health_metrics)

    def close(self, timeout: float | None = None) -> None:
        """Stop delivery, then release the HTTP client's pooled connections.

        The client is left open if the drain thread outlived the timeout,
        so an in-flight send is never cut off. Nothing can be delivered
        after close(); a later flush() raises TransportError.

        Raises:
            IngestionError: If the trailing flush fails. The client is still
                released.
        """
        try:
            self.stop(timeout=timeout)
        finally:
            if self._scheduler.is_running:
                logger.warning("Drain thread still running, leaving HTTP client open", **self._log_context)
            else:
                self._client.close()

    def ping(self) -> None:
        """Send a minimal trace synchronously to verify reachability and credentials.

        Raises:
            TransportError: On network failure
            ServerRejectionError: On HTTP status >= 400
            PingRejectedError: If the probe event was rejected
        """
        self._client.ping()

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return delivery health metrics for monitoring."""
        return self._scheduler.health_metrics


class NoOpTracer:
    """Tracer that does nothing.

    Used when telemetry is disabled or credentials are unavailable. Returns
    empty contexts so callers need no special-casing.
    """

    _name = "noop"

    def __init__(self, config: TracerConfig | None = None) -> None:
        """Accepts (and ignores) a config so it can be built like any backend."""

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return ""

    def start_trace(self, task_id: str, options: TraceOptions | None = None) -> TraceContext:
        return TraceContext(trace_id="", task_id="")

    def start_phase(
        self,
        trace: TraceContext,
        phase: str,
        options: SpanOptions | None = None,
    ) -> SpanContext:
        return SpanContext(span_id="", phase_name="", trace_id="")

    def record_generation(self, span: SpanContext, generation: GenerationInput) -> None:
        pass

    def record_skipped(self, span: SpanContext, component: str, reason: str) -> None:
        pass

    def end_phase(self, span: SpanContext, status: str, duration_ms: int) -> None:
        pass

    def complete_trace(self, trace: TraceContext, options: CompleteOptions) -> None:
        pass

    def flush(self) -> None:
        pass

    def stop(self, timeout: float | None = None) -> None:
        pass

    def close(self, timeout: float | None = None) -> None:
        pass

    def ping(self) -> None:
        pass

    @property
    def health_metrics(self) -> dict[str, Any]:
        return {}
