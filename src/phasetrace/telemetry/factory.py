# src/phasetrace/telemetry/factory.py
"""Factory functions for creating a tracer from configuration.

This module provides the glue between TracerSettings and the runtime
tracer instance. It handles:
1. Short-circuiting to NoOpTracer when telemetry is disabled
2. Resolving credentials: direct keys first, then secret paths
3. Discovering backend classes via pluggy hooks
4. Instantiating the configured backend

Usage:
    from phasetrace.core.config import load_settings
    from phasetrace.telemetry.factory import create_tracer

    tracer = create_tracer(load_settings(), secret_fetcher=secret_manager)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from phasetrace.telemetry.clock import Clock
from phasetrace.telemetry.config import TracerConfig
from phasetrace.telemetry.errors import TracerConfigurationError
from phasetrace.telemetry.hookspecs import PROJECT_NAME, BuiltinTracersPlugin, PhasetraceTracerSpec
from phasetrace.telemetry.protocols import SecretFetcher, TracerProtocol
from phasetrace.telemetry.tracer import LangfuseTracer, NoOpTracer

if TYPE_CHECKING:
    from phasetrace.core.config import TracerSettings

logger = structlog.get_logger(__name__)


def _resolve_backend_name(tracer_class: type[Any]) -> str:
    """Read the class-level ``_name`` of a discovered backend.

    Raises:
        TracerConfigurationError: If the name is missing or not a non-empty string.
    """
    name = getattr(tracer_class, "_name", None)
    if type(name) is not str or name == "":
        raise TracerConfigurationError(
            getattr(tracer_class, "__name__", repr(tracer_class)),
            f"Tracer class attribute _name must be a non-empty string, got {name!r}",
        )
    return name


def _discover_tracer_registry(tracer_plugins: Iterable[Any] = ()) -> dict[str, type[Any]]:
    """Discover tracer backends via pluggy hooks.

    Registers the built-in backends plus any additional plugin objects,
    then calls ``phasetrace_get_tracers`` hooks to build the name->class
    registry.

    Raises:
        TracerConfigurationError: If plugin registration fails, a hook
            misbehaves, or two backends share a name.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(PhasetraceTracerSpec)

    for plugin in [BuiltinTracersPlugin(), *list(tracer_plugins)]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            # PluginValidationError: hook spec mismatch
            # ValueError: duplicate plugin object or plugin name already registered
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise TracerConfigurationError(
                "tracer_plugins",
                f"Invalid tracer plugin {type(plugin).__name__}: {e}",
            ) from e

    registry: dict[str, type[Any]] = {}
    for hook_impl in plugin_manager.hook.phasetrace_get_tracers.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            tracer_classes = hook_impl.function()
        except Exception as e:
            raise TracerConfigurationError(
                "tracer_plugins",
                f"Tracer plugin {plugin_name} failed in phasetrace_get_tracers: {e}",
            ) from e

        if tracer_classes is None or isinstance(tracer_classes, (str, bytes)):
            raise TracerConfigurationError(
                "tracer_plugins",
                f"phasetrace_get_tracers in plugin {plugin_name} returned {tracer_classes!r}; "
                "expected iterable of tracer classes",
            )

        for tracer_class in tracer_classes:
            name = _resolve_backend_name(tracer_class)
            if name in registry:
                raise TracerConfigurationError(
                    name,
                    f"Duplicate tracer backend name '{name}' discovered: "
                    f"{registry[name].__name__} and {tracer_class.__name__}",
                )
            registry[name] = tracer_class

    return registry


def _resolve_credentials(
    settings: TracerSettings,
    secret_fetcher: SecretFetcher | None,
) -> tuple[str, str] | None:
    """Resolve the key pair, or None when credentials are unavailable.

    Direct keys (settings or LANGFUSE_* environment) take precedence. Only
    when either is missing are the secret paths consulted.
    """
    if settings.public_key and settings.secret_key:
        return settings.public_key, settings.secret_key

    pub_path = settings.public_key_secret
    sec_path = settings.secret_key_secret
    if not pub_path or not sec_path:
        if pub_path != sec_path:
            logger.warning(
                "Incomplete tracer secret config",
                message="both public_key_secret and secret_key_secret are required",
            )
        return None

    if secret_fetcher is None:
        logger.warning("Tracer secret paths configured but no secret fetcher available")
        return None

    try:
        public_key = secret_fetcher.fetch_secret(pub_path).strip()
    except Exception as e:
        logger.warning("Failed to fetch tracer public key", path=pub_path, error=str(e))
        return None
    try:
        secret_key = secret_fetcher.fetch_secret(sec_path).strip()
    except Exception as e:
        logger.warning("Failed to fetch tracer secret key", path=sec_path, error=str(e))
        return None

    if not public_key or not secret_key:
        return None
    return public_key, secret_key


def create_tracer(
    settings: TracerSettings,
    *,
    secret_fetcher: SecretFetcher | None = None,
    tracer_plugins: Iterable[Any] = (),
    clock: Clock | None = None,
) -> TracerProtocol:
    """Create a tracer from settings.

    Returns NoOpTracer when telemetry is disabled or credentials cannot be
    resolved; telemetry problems never stop the agent from starting.

    Args:
        settings: Validated tracer settings
        secret_fetcher: Resolves secret paths when direct keys are absent
        tracer_plugins: Additional plugin objects providing
            ``phasetrace_get_tracers`` hooks
        clock: Clock passed to the LangfuseTracer backend

    Returns:
        A ready tracer; background delivery has already started.

    Raises:
        TracerConfigurationError: If backend discovery fails or the
            configured backend name is unknown.
    """
    if not settings.enabled:
        logger.info("Tracer disabled", reason="enabled=False")
        return NoOpTracer()

    credentials = _resolve_credentials(settings, secret_fetcher)
    if credentials is None:
        logger.debug("Tracer credentials unavailable, using no-op tracer")
        return NoOpTracer()

    registry = _discover_tracer_registry(tracer_plugins)
    try:
        tracer_class = registry[settings.backend]
    except KeyError:
        raise TracerConfigurationError(
            backend_name=settings.backend,
            message=f"Unknown tracer backend. Available backends: {sorted(registry)}",
        ) from None

    public_key, secret_key = credentials
    config = TracerConfig.from_settings(settings, public_key=public_key, secret_key=secret_key)
    if tracer_class is LangfuseTracer:
        tracer: TracerProtocol = LangfuseTracer(config, clock=clock)
    else:
        tracer = tracer_class(config)

    logger.info("Tracer initialized", backend=settings.backend, base_url=tracer.base_url)
    return tracer
