# src/phasetrace/telemetry/scheduler.py
"""DrainScheduler moves buffered events into sent batches.

The scheduler is the sole consumer of the EventBuffer:
1. A background thread wakes every flush_interval and drains the buffer
2. drain() runs the same logic synchronously for explicit flushes
3. A single drain lock guarantees at most one drain forms batches at a time
4. stop() signals the thread once, waits for its final drain, and returns

Design principles:
- Ticker drains never let a send failure escape (telemetry must not
  destabilize the host agent)
- Explicit drains report the first failure to their caller
- A batch is discarded after its send attempt whatever the outcome;
  there is no re-queue

Thread Safety:
    - enqueue happens on producer threads via EventBuffer (lock-light)
    - _drain_locked() runs under _drain_lock, from the drain thread or a
      caller thread
    - Send metrics are only written under _drain_lock
    - _stop_lock guards the one-shot stop claim
"""

import threading
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from phasetrace.telemetry.buffer import EventBuffer
from phasetrace.telemetry.client import IngestionResponse
from phasetrace.telemetry.errors import IngestionError
from phasetrace.telemetry.events import IngestionEvent

logger = structlog.get_logger(__name__)

SendBatch = Callable[[Sequence[IngestionEvent]], IngestionResponse | None]


class DrainScheduler:
    """Periodic and on-demand drain of an EventBuffer.

    Example:
        >>> scheduler = DrainScheduler(buffer, sender.send, flush_interval=5.0, max_batch_size=50)
        >>> scheduler.start()
        >>> scheduler.drain()  # raises the first send error, if any
        >>> scheduler.stop()
    """

    def __init__(
        self,
        buffer: EventBuffer,
        send_batch: SendBatch,
        *,
        flush_interval: float = 5.0,
        max_batch_size: int = 50,
    ) -> None:
        """Initialize the scheduler. The thread is started by start().

        Args:
            buffer: Buffer to drain; this scheduler must be its only consumer
            send_batch: Delivers one batch, raising IngestionError on failure
            flush_interval: Seconds between background drains (default: 5.0)
            max_batch_size: Maximum events per batch (default: 50)

        Raises:
            ValueError: If flush_interval <= 0 or max_batch_size < 1.
        """
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0, got {flush_interval}")
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
        self._buffer = buffer
        self._send_batch = send_batch
        self._flush_interval = flush_interval
        self._max_batch_size = max_batch_size

        # Health metrics (written under _drain_lock)
        self._batches_sent = 0
        self._batches_failed = 0
        self._events_sent = 0
        self._events_rejected = 0

        # Thread coordination
        self._drain_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._stop_lock = threading.Lock()
        self._stop_claimed = False

        # Daemon so a forgotten stop() cannot hold the host process open
        self._thread = threading.Thread(
            target=self._run,
            name="telemetry-drain",
            daemon=True,
        )

    def start(self) -> None:
        """Start the background drain thread."""
        self._thread.start()

    def _run(self) -> None:
        """Background thread: drain on every tick until stopped.

        Event.wait() doubles as the ticker; it returns True as soon as
        stop is signalled, which triggers one final drain before exit.
        """
        while not self._stop_event.wait(self._flush_interval):
            self._drain_in_background()
        # Final drain before exiting to minimize data loss
        self._drain_in_background()

    def _drain_in_background(self) -> None:
        """Drain, logging failures instead of raising."""
        try:
            with self._drain_lock:
                self._drain_locked(propagate=False)
        except Exception as e:
            # CRITICAL: Log but don't crash - telemetry must not kill the agent
            logger.error("Telemetry drain failed unexpectedly", error=str(e))

    def drain(self) -> None:
        """Drain the buffer synchronously.

        Waits for any in-flight drain, then sends everything buffered. A
        failed batch does not stop the drain; the remaining events are still
        sent and the first error is raised at the end.

        Raises:
            IngestionError: First batch failure encountered.
        """
        with self._drain_lock:
            self._drain_locked(propagate=True)

    def _drain_locked(self, *, propagate: bool) -> None:
        """Pop events into batches of at most max_batch_size and send them.

        Must be called while holding _drain_lock.
        """
        first_error: IngestionError | None = None
        batch: list[IngestionEvent] = []
        while True:
            event = self._buffer.pop_nowait()
            if event is None:
                break
            batch.append(event)
            if len(batch) >= self._max_batch_size:
                error = self._send_one(batch, propagate=propagate)
                first_error = first_error or error
                batch = []

        if batch:
            error = self._send_one(batch, propagate=propagate)
            first_error = first_error or error

        if first_error is not None:
            raise first_error

    def _send_one(self, batch: list[IngestionEvent], *, propagate: bool) -> IngestionError | None:
        """Send one batch and update metrics.

        Returns:
            The send error when propagating, otherwise None (error is logged).
        """
        try:
            result = self._send_batch(batch)
        except IngestionError as e:
            self._batches_failed += 1
            if propagate:
                return e
            logger.warning(
                "Ingestion batch send failed, dropping batch",
                events=len(batch),
                error=str(e),
            )
            return None

        self._batches_sent += 1
        self._events_sent += len(batch)
        if result is not None:
            self._events_rejected += len(result.errors)
        return None

    def stop(self, timeout: float | None = None) -> bool:
        """Signal the drain thread to finish and wait for it.

        Only the first call signals; every call waits for the thread. The
        thread performs a final drain before exiting, logging any failure.

        Args:
            timeout: Maximum seconds to wait for the thread. None waits forever.

        Returns:
            True for the one call that claimed the stop, False for every other.
        """
        claimed = self._claim_stop()
        if claimed:
            self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.error("Telemetry drain thread did not exit within timeout", timeout=timeout)
        return claimed

    def _claim_stop(self) -> bool:
        """Return True for exactly one caller, however many race."""
        with self._stop_lock:
            if self._stop_claimed:
                return False
            self._stop_claimed = True
            return True

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return a snapshot of delivery health.

        - batches_sent / batches_failed: Send outcomes after retry
        - events_sent: Events in successfully sent batches
        - events_rejected: Events the endpoint rejected individually
        - events_dropped: Events dropped because the buffer was full
        - queue_depth / queue_capacity: Current buffer fill

        Reads are approximately consistent; good enough for monitoring.
        """
        return {
            "batches_sent": self._batches_sent,
            "batches_failed": self._batches_failed,
            "events_sent": self._events_sent,
            "events_rejected": self._events_rejected,
            "events_dropped": self._buffer.dropped_count,
            "queue_depth": len(self._buffer),
            "queue_capacity": self._buffer.capacity,
        }
