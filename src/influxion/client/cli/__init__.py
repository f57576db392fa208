"""Command-line interface for Influxion.

This module provides the main CLI entry point and assembles all commands.

Commands:
- status: Show configuration, last run and pending session files
- sync: Run one upload cycle now
- run: Run the upload scheduler in the foreground
"""

from __future__ import annotations

from pathlib import Path

import click

from influxion.client.cli.config import (
    configure_logging,
    format_bytes,
    get_state_dir,
    mask_api_key,
    require_config,
)
from influxion.client.cli.status import status
from influxion.client.cli.sync import run, sync


@click.group()
@click.version_option(package_name="influxion-sync")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Host state directory (default: $OPENCLAW_STATE_DIR or ~/.openclaw).",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with the plugin configuration (instead of openclaw.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, state_dir: Path | None, config_file: Path | None, verbose: bool) -> None:
    """Influxion - upload agent sessions and skills."""
    ctx.ensure_object(dict)
    ctx.obj["state_dir"] = state_dir
    ctx.obj["config_file"] = config_file
    configure_logging(verbose)


cli.add_command(status)
cli.add_command(sync)
cli.add_command(run)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "format_bytes",
    "get_state_dir",
    "mask_api_key",
    "require_config",
]
