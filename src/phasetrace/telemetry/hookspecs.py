# src/phasetrace/telemetry/hookspecs.py
"""pluggy hook specifications for tracer backends.

Backends implement these hooks to register themselves. create_tracer()
calls them to discover the available backends.

Usage (implementing a backend plugin):
    from phasetrace.telemetry.hookspecs import hookimpl

    class MyBackendPlugin:
        @hookimpl
        def phasetrace_get_tracers(self):
            return [MyTracer]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from phasetrace.telemetry.protocols import TracerProtocol

PROJECT_NAME = "phasetrace"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for backend plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class PhasetraceTracerSpec:
    """Hook specifications for tracer backend plugins."""

    @hookspec
    def phasetrace_get_tracers(self) -> list[type["TracerProtocol"]]:  # type: ignore[empty-body]
        """Return tracer backend classes.

        Each class must carry a non-empty class-level ``_name`` (the value
        matched against ``TracerSettings.backend``) and accept a
        TracerConfig as its first constructor argument.

        Returns:
            List of tracer classes (not instances)
        """


class BuiltinTracersPlugin:
    """Plugin that registers the built-in tracer backends."""

    @hookimpl
    def phasetrace_get_tracers(self) -> list[type]:
        """Return built-in tracer classes."""
        from phasetrace.telemetry.tracer import LangfuseTracer, NoOpTracer

        return [LangfuseTracer, NoOpTracer]
