"""Command line entry point."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Optional

import typer

from .app import run_orbiter
from .config import load_config
from .errors import ConfigError

app = typer.Typer(help="Make an item orbit your VTube Studio model.")


@app.command()
def main(
    filename: Optional[str] = typer.Argument(
        None, help="Image in the public folder to orbit (default: orbiter.png)"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    host: Optional[str] = typer.Option(None, help="VTube Studio API host"),
    port: Optional[int] = typer.Option(None, help="VTube Studio API port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Connect to VTube Studio and orbit FILENAME around the model."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_config(config)
    except ConfigError as err:
        typer.echo(f"Config error: {err}", err=True)
        raise typer.Exit(code=2) from err

    overrides = {
        key: value
        for key, value in (("asset_filename", filename), ("host", host), ("port", port))
        if value is not None
    }
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    typer.echo("--- VTube Studio Orbiter ---")
    raise typer.Exit(code=asyncio.run(run_orbiter(settings)))
