# src/phasetrace/telemetry/buffer.py
"""Bounded event buffer between producers and the drain scheduler.

Key design decisions:
- Fixed capacity via queue.Queue(maxsize=N): memory stays bounded during a
  sustained network outage
- Non-blocking put: a full buffer drops the NEW event, the caller never waits
- Single consumer: pop_nowait() is only called from drains, which the
  DrainScheduler serializes
"""

import queue
import threading
import uuid

import structlog

from phasetrace.telemetry.clock import DEFAULT_CLOCK, Clock
from phasetrace.telemetry.events import EventBody, IngestionEvent

logger = structlog.get_logger(__name__)


class EventBuffer:
    """Fixed-capacity FIFO of ingestion events.

    Thread Safety:
        enqueue() is safe to call from any number of threads. pop_nowait()
        is thread-safe too, but batch formation relies on a single drain at
        a time; DrainScheduler enforces that with its drain lock.

    Attributes:
        dropped_count: Total number of events dropped because the buffer was full.

    Example:
        buffer = EventBuffer(capacity=1024)
        buffer.enqueue(TraceStartBody(id="task-1", name="default"))
        event = buffer.pop_nowait()
    """

    def __init__(self, capacity: int = 1024, *, clock: Clock | None = None) -> None:
        """Initialize the buffer.

        Args:
            capacity: Maximum number of buffered events. Defaults to 1024.
            clock: Source of enqueue timestamps. Defaults to the system clock.

        Raises:
            ValueError: If capacity < 1.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._queue: queue.Queue[IngestionEvent] = queue.Queue(maxsize=capacity)
        self._clock = clock or DEFAULT_CLOCK
        self._dropped_count = 0
        self._dropped_lock = threading.Lock()

    def enqueue(self, body: EventBody) -> IngestionEvent | None:
        """Wrap body in an event and insert it without blocking.

        Assigns a fresh event ID and the current UTC timestamp. If the buffer
        is full the event is dropped and a warning logged; this method never
        raises and never blocks.

        Args:
            body: Typed event body.

        Returns:
            The buffered event, or None if it was dropped.
        """
        event = IngestionEvent(
            id=str(uuid.uuid4()),
            timestamp=self._clock.now(),
            body=body,
        )
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            with self._dropped_lock:
                self._dropped_count += 1
                dropped_total = self._dropped_count
            logger.warning(
                "Telemetry event buffer full, dropping event",
                event_type=str(event.type),
                dropped_total=dropped_total,
                buffer_capacity=self.capacity,
            )
            return None
        return event

    def pop_nowait(self) -> IngestionEvent | None:
        """Remove and return the oldest event, or None when empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def dropped_count(self) -> int:
        """Number of events dropped due to a full buffer."""
        with self._dropped_lock:
            return self._dropped_count

    def __len__(self) -> int:
        """Return the approximate number of buffered events."""
        return self._queue.qsize()
