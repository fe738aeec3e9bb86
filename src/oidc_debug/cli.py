# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

"""
Command line entry point: ``oidcdebug``.
"""

from pathlib import Path

import anyio
import typer

from oidc_debug.config import load_config
from oidc_debug.exceptions import ConfigError, ListenerBindError
from oidc_debug.flow import start
from oidc_debug.mock import MockProvider

app = typer.Typer(
    name="oidcdebug",
    help="Tools to help diagnose issues with OIDC.",
    no_args_is_help=True,
    add_completion=False,
)


@app.command("test")
def run_test(
    config: Path = typer.Option(..., "--config", "-c", help="YAML file describing the client and provider."),
) -> None:
    """Run the authorization code flow against a provider and print every artifact."""
    try:
        raw = load_config(config)
    except ConfigError as e:
        typer.echo(str(e))
        raise typer.Exit(code=1) from e

    outcome = anyio.run(start, raw)
    if not outcome.ok:
        raise typer.Exit(code=1)


@app.command("mock")
def run_mock(
    host: str = typer.Option("localhost", help="Host to bind."),
    port: int = typer.Option(4444, help="Port to bind."),
) -> None:
    """Serve the mock OIDC provider until interrupted."""
    try:
        anyio.run(MockProvider().serve, host, port)
    except ListenerBindError as e:
        typer.echo(str(e))
        raise typer.Exit(code=1) from e
