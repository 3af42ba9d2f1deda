# src/phasetrace/cli.py
"""phasetrace Command Line Interface.

Entry point for the phasetrace CLI tool. The only operational command is
``ping``, which validates credentials and reachability before an agent
starts emitting real telemetry.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from phasetrace import __version__

app = typer.Typer(
    name="phasetrace",
    help="phasetrace: Batched execution telemetry for autonomous agents.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"phasetrace version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """phasetrace: Batched execution telemetry for autonomous agents."""


@app.command()
def ping(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file. LANGFUSE_* environment variables override it.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as JSON.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Send a single probe event to verify credentials and reachability."""
    from phasetrace.core.config import load_settings
    from phasetrace.core.logging import configure_logging
    from phasetrace.telemetry.errors import TelemetryError
    from phasetrace.telemetry.factory import create_tracer
    from phasetrace.telemetry.tracer import NoOpTracer

    configure_logging(json_output=json_logs, level=log_level)

    settings_path = Path(settings).expanduser() if settings is not None else None
    try:
        tracer_settings = load_settings(settings_path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    try:
        tracer = create_tracer(tracer_settings)
    except TelemetryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if isinstance(tracer, NoOpTracer):
        typer.echo("Telemetry disabled or credentials not configured; nothing to ping.")
        return

    try:
        tracer.ping()
    except TelemetryError as e:
        typer.echo(f"Ping failed ({tracer.base_url}): {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        tracer.close()

    typer.echo(f"Ping succeeded ({tracer.base_url})")
