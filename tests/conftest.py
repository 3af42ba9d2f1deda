# tests/conftest.py
"""Shared test fixtures and helpers.

Network access is never real: every test that needs the ingestion endpoint
uses the ``ingestion_api`` fixture, a respx route for
``POST https://langfuse.test/api/public/ingestion`` that accepts every
event by default. Tests override its side_effect to script failures.

Tracers built here use a one-hour flush interval so the background thread
never fires on its own; tests drive delivery with flush()/stop() unless they
are specifically exercising the ticker.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import json
import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
import respx
from hypothesis import Phase, Verbosity, settings

from phasetrace.telemetry.clock import MockClock
from phasetrace.telemetry.config import TracerConfig
from phasetrace.telemetry.tracer import LangfuseTracer

BASE_URL = "https://langfuse.test"
INGESTION_URL = f"{BASE_URL}/api/public/ingestion"


def accept_all(request: httpx.Request) -> httpx.Response:
    """respx side effect: report every event in the batch as accepted."""
    batch = json.loads(request.content)["batch"]
    return httpx.Response(
        207,
        json={"successes": [{"id": event["id"], "status": 201} for event in batch], "errors": []},
    )


@pytest.fixture
def clock() -> MockClock:
    """Clock pinned to a fixed instant."""
    return MockClock(datetime(2026, 1, 30, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def tracer_config() -> TracerConfig:
    """Config pointing at the mocked endpoint; ticker effectively disabled, no retry delay."""
    return TracerConfig(
        public_key="pk-test",
        secret_key="sk-test",
        base_url=BASE_URL,
        flush_interval=3600.0,
        retry_delay=0.0,
    )


@pytest.fixture
def ingestion_api() -> Iterator[respx.Route]:
    """Mocked ingestion endpoint accepting every event."""
    with respx.mock(assert_all_called=False) as router:
        route = router.post(INGESTION_URL).mock(side_effect=accept_all)
        yield route


@pytest.fixture
def make_tracer(
    ingestion_api: respx.Route,
    tracer_config: TracerConfig,
    clock: MockClock,
) -> Iterator[Callable[..., LangfuseTracer]]:
    """Build LangfuseTracers from tracer_config with overrides; closes them on teardown."""
    created: list[LangfuseTracer] = []

    def _make(**overrides: Any) -> LangfuseTracer:
        fields = {
            "public_key": tracer_config.public_key,
            "secret_key": tracer_config.secret_key,
            "base_url": tracer_config.base_url,
            "flush_interval": tracer_config.flush_interval,
            "max_batch_size": tracer_config.max_batch_size,
            "buffer_capacity": tracer_config.buffer_capacity,
            "request_timeout": tracer_config.request_timeout,
            "retry_delay": tracer_config.retry_delay,
        }
        fields.update(overrides)
        tracer = LangfuseTracer(TracerConfig(**fields), clock=clock)
        created.append(tracer)
        return tracer

    yield _make

    # Close inside the respx context so stragglers never hit the network
    ingestion_api.side_effect = accept_all
    for tracer in created:
        tracer.close(timeout=5.0)


@pytest.fixture
def tracer(make_tracer: Callable[..., LangfuseTracer]) -> LangfuseTracer:
    """LangfuseTracer with default test config."""
    return make_tracer()


@pytest.fixture
def sent_batches(ingestion_api: respx.Route) -> Callable[[], list[list[dict[str, Any]]]]:
    """Return a callable listing the wire batches received so far, in order."""

    def _batches() -> list[list[dict[str, Any]]]:
        return [json.loads(call.request.content)["batch"] for call in ingestion_api.calls]

    return _batches


@pytest.fixture
def sent_events(sent_batches: Callable[[], list[list[dict[str, Any]]]]) -> Callable[[], list[dict[str, Any]]]:
    """Return a callable listing every wire event received so far, flattened."""

    def _events() -> list[dict[str, Any]]:
        return [event for batch in sent_batches() for event in batch]

    return _events


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
