# tests/unit/telemetry/test_retry.py
"""Tests for RetryingSender: exactly one retry after a fixed delay."""

from collections.abc import Sequence
from unittest.mock import patch

import pytest

from phasetrace.telemetry.client import IngestionResponse
from phasetrace.telemetry.errors import MarshalError, ServerRejectionError, TransportError
from phasetrace.telemetry.events import IngestionEvent
from phasetrace.telemetry.retry import MAX_ATTEMPTS, RetryingSender


class ScriptedTransport:
    """Transport that raises or returns from a script, one entry per call."""

    def __init__(self, *outcomes: Exception | IngestionResponse | None) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[Sequence[IngestionEvent]] = []

    def send_batch(self, batch: Sequence[IngestionEvent]) -> IngestionResponse | None:
        self.calls.append(batch)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestRetryingSender:
    def test_success_first_try_sends_once(self) -> None:
        response = IngestionResponse()
        transport = ScriptedTransport(response)
        sleeps: list[float] = []

        result = RetryingSender(transport, retry_delay=0.5, sleep=sleeps.append).send([])

        assert result is response
        assert len(transport.calls) == 1
        assert sleeps == []

    def test_fail_once_then_succeed_sends_twice(self) -> None:
        transport = ScriptedTransport(TransportError("connection refused"), None)
        sleeps: list[float] = []

        result = RetryingSender(transport, retry_delay=0.5, sleep=sleeps.append).send([])

        assert result is None
        assert len(transport.calls) == 2
        assert sleeps == [0.5]

    def test_two_failures_raise_second_error(self) -> None:
        first = ServerRejectionError(503, "unavailable")
        second = ServerRejectionError(500, "boom")
        transport = ScriptedTransport(first, second)

        with pytest.raises(ServerRejectionError) as exc_info:
            RetryingSender(transport, retry_delay=0.0, sleep=lambda _: None).send([])

        assert exc_info.value is second
        assert len(transport.calls) == MAX_ATTEMPTS

    def test_permanent_failures_are_retried_too(self) -> None:
        transport = ScriptedTransport(ServerRejectionError(401, "bad key"), MarshalError("bad body"))

        with pytest.raises(MarshalError):
            RetryingSender(transport, retry_delay=0.0, sleep=lambda _: None).send([])

        assert len(transport.calls) == 2

    def test_non_ingestion_errors_are_not_retried(self) -> None:
        transport = ScriptedTransport(RuntimeError("bug"), None)

        with pytest.raises(RuntimeError):
            RetryingSender(transport, retry_delay=0.0, sleep=lambda _: None).send([])

        assert len(transport.calls) == 1

    def test_same_batch_is_resent(self) -> None:
        transport = ScriptedTransport(TransportError("reset"), None)
        batch: list[IngestionEvent] = []

        RetryingSender(transport, retry_delay=0.0, sleep=lambda _: None).send(batch)

        assert transport.calls[0] is batch
        assert transport.calls[1] is batch

    def test_retry_is_logged(self) -> None:
        transport = ScriptedTransport(TransportError("reset"), None)

        with patch("phasetrace.telemetry.retry.logger") as mock_logger:
            RetryingSender(transport, retry_delay=0.0, sleep=lambda _: None).send([])

        mock_logger.warning.assert_called_once()
        call_args = mock_logger.warning.call_args
        assert call_args[0][0] == "Ingestion batch send failed, retrying"
        assert call_args[1]["attempt"] == 1
        assert "reset" in call_args[1]["error"]

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError, match="retry_delay"):
            RetryingSender(ScriptedTransport(), retry_delay=-1.0)
