"""Command-line entry for the sidecar."""

from __future__ import annotations

import asyncio

import typer

from opencode_sidecar.app import run_sidecar
from opencode_sidecar.config import load_settings
from opencode_sidecar.logging_utils import configure_logging

app = typer.Typer(
    name="opencode-sidecar",
    help="Supervise an OpenCode server and serve JSON commands over stdio.",
    add_completion=False,
)


@app.command()
def serve(
    hostname: str | None = typer.Option(None, "--hostname", help="Hostname for the launched server"),
    port: int | None = typer.Option(None, "--port", help="Port for the launched server (0 = any)"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for the server address"),
    directory: str | None = typer.Option(None, "--directory", "-d", help="Working directory sent to the server"),
    fallback_url: str | None = typer.Option(None, "--fallback-url", help="Server URL used when launch fails"),
    launch: bool = typer.Option(True, "--launch/--no-launch", help="Spawn the server or only use --fallback-url"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level written to stderr"),
    log_format: str | None = typer.Option(None, "--log-format", help="Log format: text or json"),
) -> None:
    """Launch the server and answer newline-delimited JSON requests on stdin."""

    settings = load_settings(
        hostname=hostname,
        port=port,
        startup_timeout_seconds=timeout,
        directory=directory,
        fallback_url=fallback_url,
        launch=None if launch else False,
        log_level=log_level,
        log_format=log_format,
    )
    configure_logging(settings.log_level, settings.log_format)
    try:
        asyncio.run(run_sidecar(settings))
    except KeyboardInterrupt:
        raise typer.Exit(0) from None
