# src/phasetrace/core/config.py
"""Configuration schema and loading.

Settings come from an optional YAML file overlaid with LANGFUSE_*
environment variables, then validated by Pydantic.
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from phasetrace.telemetry.client import DEFAULT_BASE_URL


class TracerSettings(BaseModel):
    """Tracer configuration.

    Credentials can be given directly (public_key/secret_key, typically via
    LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY) or as secret paths resolved
    through a SecretFetcher. Direct keys win when both are present.

    Example YAML:
        enabled: true
        public_key_secret: projects/p/secrets/langfuse-public-key
        secret_key_secret: projects/p/secrets/langfuse-secret-key
        base_url: https://cloud.langfuse.com
        flush_interval_seconds: 5
    """

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Enable telemetry delivery")
    backend: str = Field(default="langfuse", description="Tracer backend name")
    public_key: str = Field(default="", description="Langfuse public key")
    secret_key: str = Field(default="", description="Langfuse secret key")
    public_key_secret: str = Field(default="", description="Secret path holding the public key")
    secret_key_secret: str = Field(default="", description="Secret path holding the secret key")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Ingestion endpoint root")
    flush_interval_seconds: float = Field(default=5.0, gt=0, description="Seconds between background drains")
    max_batch_size: int = Field(default=50, gt=0, description="Maximum events per request")
    buffer_capacity: int = Field(default=1024, gt=0, description="Maximum buffered events")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request timeout")
    retry_delay_seconds: float = Field(default=0.5, ge=0, description="Delay before the single retry")


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def replacer(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        if match.group(2) is not None:
            return match.group(2)
        # No env var and no default - keep original
        return match.group(0)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path | None = None) -> TracerSettings:
    """Load tracer settings with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (LANGFUSE_*) - highest priority
    2. Config file (YAML), when given
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: LANGFUSE_PUBLIC_KEY, LANGFUSE_BASE_URL, ...

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        Validated TracerSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="LANGFUSE",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; keep only schema fields, lowercased
    known_fields = set(TracerSettings.model_fields)
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k.lower() in known_fields}

    raw_config = _expand_env_vars(raw_config)

    return TracerSettings(**raw_config)
