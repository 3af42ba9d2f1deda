# src/phasetrace/telemetry/client.py
"""HTTP client for the Langfuse batched ingestion API.

Turns a batch of IngestionEvents into one POST request and interprets the
partial-success response. A request-level failure (transport error or HTTP
status >= 400) fails the whole call; individual event rejections inside a
2xx response are logged and otherwise ignored, because the endpoint has
already made a final decision about them.
"""

from __future__ import annotations

import base64
import json
import uuid
from collections.abc import Sequence
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from phasetrace.telemetry.clock import DEFAULT_CLOCK, Clock
from phasetrace.telemetry.errors import (
    IngestionError,
    MarshalError,
    PingRejectedError,
    ServerRejectionError,
    TransportError,
)
from phasetrace.telemetry.events import ConnectivityProbeBody, IngestionEvent

logger = structlog.get_logger(__name__)

INGESTION_PATH = "/api/public/ingestion"
DEFAULT_BASE_URL = "https://cloud.langfuse.com"

# Error bodies are truncated before they reach logs and exceptions
_MAX_ERROR_BODY_CHARS = 4096

PING_TRACE_NAME = "phasetrace-connectivity-test"


class IngestionSuccess(BaseModel):
    """An event the endpoint accepted."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    status: int = 0


class IngestionFailure(BaseModel):
    """An event the endpoint rejected inside an otherwise successful batch."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Missing fields take zero values; one partial entry must not fail the whole body
    id: str = ""
    status: int = 0
    message: str = ""
    error: Any = None


class IngestionResponse(BaseModel):
    """Body of a 2xx ingestion response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    successes: list[IngestionSuccess] = Field(default_factory=list)
    errors: list[IngestionFailure] = Field(default_factory=list)


def basic_auth_header(public_key: str, secret_key: str) -> str:
    """Build the Basic credential header value for a key pair."""
    token = base64.b64encode(f"{public_key}:{secret_key}".encode()).decode("ascii")
    return f"Basic {token}"


def encode_batch(batch: Sequence[IngestionEvent]) -> bytes:
    """Serialize a batch to the ``{"batch": [...]}`` request body.

    Raises:
        MarshalError: If an event body holds a value JSON cannot represent.
    """
    try:
        return json.dumps({"batch": [event.to_wire() for event in batch]}, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise MarshalError(f"marshal batch: {e}") from e


class IngestionClient:
    """Sends ingestion batches to a Langfuse-compatible endpoint.

    Wraps one shared httpx.Client for connection pooling. The credential
    header is computed once at construction.

    Example:
        client = IngestionClient(
            base_url="https://cloud.langfuse.com",
            public_key="pk-lf-...",
            secret_key="sk-lf-...",
        )
        response = client.send_batch(events)
        client.close()
    """

    def __init__(
        self,
        *,
        base_url: str,
        public_key: str,
        secret_key: str,
        timeout: float = 10.0,
        clock: Clock | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Endpoint root, e.g. https://cloud.langfuse.com
            public_key: Langfuse public key
            secret_key: Langfuse secret key
            timeout: Per-request timeout in seconds (default: 10.0)
            clock: Source of timestamps for ping events
            transport: Optional httpx transport override
        """
        self._base_url = base_url.rstrip("/")
        self._clock = clock or DEFAULT_CLOCK
        self._closed = False
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Authorization": basic_auth_header(public_key, secret_key),
            },
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _post(self, body: bytes) -> httpx.Response:
        """POST a serialized body, mapping failures to the error taxonomy."""
        if self._closed:
            raise TransportError("send request: ingestion client is closed")
        try:
            response = self._client.post(INGESTION_PATH, content=body)
        except httpx.HTTPError as e:
            raise TransportError(f"send request: {e}") from e

        if response.status_code >= 400:
            raise ServerRejectionError(response.status_code, response.text[:_MAX_ERROR_BODY_CHARS])
        return response

    def send_batch(self, batch: Sequence[IngestionEvent]) -> IngestionResponse | None:
        """Send one batch.

        Args:
            batch: Events to send, in order.

        Returns:
            The parsed response, or None if the 2xx body could not be parsed
            (treated as success).

        Raises:
            MarshalError: If the batch cannot be serialized
            TransportError: On network failure
            ServerRejectionError: On HTTP status >= 400
        """
        response = self._post(encode_batch(batch))

        try:
            result = IngestionResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.warning(
                "Could not parse ingestion response body",
                status=response.status_code,
                error=str(e),
            )
            return None

        for failure in result.errors:
            logger.warning(
                "Ingestion event rejected",
                event_id=failure.id,
                status=failure.status,
                message=failure.message,
            )

        logger.info(
            "Ingestion batch sent",
            events=len(batch),
            accepted=len(result.successes),
            rejected=len(result.errors),
            status=response.status_code,
        )
        return result

    def ping(self) -> None:
        """Send a single probe trace synchronously to verify credentials.

        Bypasses any buffering and does not retry.

        Raises:
            TransportError: On network failure
            ServerRejectionError: On HTTP status >= 400
            IngestionError: If the response body cannot be parsed
            PingRejectedError: If the endpoint rejected the probe event
        """
        event = IngestionEvent(
            id=str(uuid.uuid4()),
            timestamp=self._clock.now(),
            body=ConnectivityProbeBody(
                id=f"phasetrace-ping-{uuid.uuid4()}",
                name=PING_TRACE_NAME,
            ),
        )
        response = self._post(encode_batch([event]))

        try:
            result = IngestionResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise IngestionError(f"ping: could not parse response: {e}") from e

        if result.errors:
            first = result.errors[0]
            raise PingRejectedError(first.id, first.status, first.message)

    def close(self) -> None:
        """Release pooled connections. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._client.close()
