# src/phasetrace/telemetry/retry.py
"""Single-retry batch delivery with tenacity.

Every failed send gets exactly one more attempt after a fixed delay. There
is no backoff or jitter, and no distinction between transient and permanent
failures: a dropped connection and a 401 are both retried once.
"""

from collections.abc import Callable, Sequence
from typing import Protocol

import structlog
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from phasetrace.telemetry.client import IngestionResponse
from phasetrace.telemetry.errors import IngestionError
from phasetrace.telemetry.events import IngestionEvent

logger = structlog.get_logger(__name__)

# Total tries per batch: the first attempt plus one retry
MAX_ATTEMPTS = 2


class BatchTransport(Protocol):
    """Anything that can deliver one batch (IngestionClient in production)."""

    def send_batch(self, batch: Sequence[IngestionEvent]) -> IngestionResponse | None: ...


def _log_retry(retry_state: RetryCallState) -> None:
    """tenacity before_sleep hook: warn that a batch is about to be retried."""
    error = retry_state.outcome.exception() if retry_state.outcome is not None else None
    logger.warning(
        "Ingestion batch send failed, retrying",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


class RetryingSender:
    """Delivers batches with one retry on failure.

    Example:
        sender = RetryingSender(client, retry_delay=0.5)
        sender.send(batch)  # raises the second failure if both attempts fail
    """

    def __init__(
        self,
        transport: BatchTransport,
        *,
        retry_delay: float = 0.5,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the sender.

        Args:
            transport: Batch transport to wrap
            retry_delay: Seconds to wait before the retry (default: 0.5)
            sleep: Optional sleep override for tests

        Raises:
            ValueError: If retry_delay is negative.
        """
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")
        self._transport = transport
        self._retry_delay = retry_delay
        self._sleep = sleep

    def send(self, batch: Sequence[IngestionEvent]) -> IngestionResponse | None:
        """Send a batch, retrying once on IngestionError.

        Raises:
            IngestionError: The error from the second attempt, if both fail.
        """
        retrying = Retrying(
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(IngestionError),
            before_sleep=_log_retry,
            reraise=True,
        )
        if self._sleep is not None:
            retrying = retrying.copy(sleep=self._sleep)
        return retrying(self._transport.send_batch, batch)
