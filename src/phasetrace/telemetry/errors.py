# src/phasetrace/telemetry/errors.py
"""Telemetry-specific exceptions.

These exceptions describe telemetry delivery and setup failures only. The
background drain never lets them escape; they surface to callers of the
explicit, synchronous operations (flush, stop, ping) and of the factory.
"""


class TelemetryError(Exception):
    """Base class for all phasetrace telemetry errors."""


class IngestionError(TelemetryError):
    """A batch could not be delivered to the ingestion endpoint."""


class TransportError(IngestionError):
    """Network or connection failure while sending a batch."""


class MarshalError(IngestionError):
    """The batch payload could not be serialized to JSON."""


class ServerRejectionError(IngestionError):
    """The ingestion endpoint rejected the whole request (HTTP status >= 400).

    Attributes:
        status_code: HTTP status returned by the endpoint
        body: Response body, truncated for logging
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Ingestion API returned {status_code}: {body}")


class PingRejectedError(IngestionError):
    """The endpoint accepted the ping request but rejected the probe event.

    Attributes:
        event_id: ID of the rejected ingestion event
        status: Per-event status reported by the endpoint
        message: Rejection message reported by the endpoint
    """

    def __init__(self, event_id: str, status: int, message: str) -> None:
        self.event_id = event_id
        self.status = status
        self.message = message
        super().__init__(f"Ping event rejected: {message}")


class TracerConfigurationError(TelemetryError):
    """Raised when a tracer backend cannot be discovered or configured.

    This is raised during setup, NOT during event emission. Emission paths
    must not raise - they log errors instead.

    Attributes:
        backend_name: Name of the backend that failed
        message: Human-readable error description
    """

    def __init__(self, backend_name: str, message: str) -> None:
        self.backend_name = backend_name
        self.message = message
        super().__init__(f"Tracer backend '{backend_name}' failed: {message}")
