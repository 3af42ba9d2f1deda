# src/phasetrace/telemetry/config.py
"""Runtime tracer configuration.

TracerConfig is the frozen, fully-resolved configuration a tracer runs
with. It is built from validated TracerSettings plus the credentials the
factory resolved (from settings or a secret fetcher).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from phasetrace.telemetry.client import DEFAULT_BASE_URL

if TYPE_CHECKING:
    from phasetrace.core.config import TracerSettings


@dataclass(frozen=True, slots=True)
class TracerConfig:
    """Resolved configuration for LangfuseTracer.

    Attributes:
        public_key: Langfuse public key
        secret_key: Langfuse secret key
        base_url: Ingestion endpoint root
        flush_interval: Seconds between background drains
        max_batch_size: Maximum events per request
        buffer_capacity: Maximum buffered events before new ones are dropped
        request_timeout: Per-request timeout in seconds
        retry_delay: Seconds to wait before the single retry
    """

    public_key: str
    secret_key: str
    base_url: str = DEFAULT_BASE_URL
    flush_interval: float = 5.0
    max_batch_size: int = 50
    buffer_capacity: int = 1024
    request_timeout: float = 10.0
    retry_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0, got {self.flush_interval}")
        if self.max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {self.max_batch_size}")
        if self.buffer_capacity < 1:
            raise ValueError(f"buffer_capacity must be >= 1, got {self.buffer_capacity}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")

    @classmethod
    def from_settings(cls, settings: TracerSettings, *, public_key: str, secret_key: str) -> TracerConfig:
        """Factory from validated settings and resolved credentials.

        An empty base_url in settings falls back to the Langfuse Cloud default.
        """
        return cls(
            public_key=public_key,
            secret_key=secret_key,
            base_url=settings.base_url or DEFAULT_BASE_URL,
            flush_interval=settings.flush_interval_seconds,
            max_batch_size=settings.max_batch_size,
            buffer_capacity=settings.buffer_capacity,
            request_timeout=settings.request_timeout_seconds,
            retry_delay=settings.retry_delay_seconds,
        )
