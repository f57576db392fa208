"""Sync commands for the Influxion CLI.

Commands:
- sync: Run one upload cycle now
- run: Run the upload scheduler in the foreground
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from influxion.client.cli.config import format_bytes, get_state_dir, require_config
from influxion.client.sync.engine import SyncEngine
from influxion.client.sync.scheduler import UploadScheduler
from influxion.client.sync.types import CycleResult
from influxion.core.config import InfluxionConfig


def display_summary(result: CycleResult, include_skills: bool) -> None:
    """Display cycle results."""
    if result.errors:
        click.echo(click.style("\nErrors:", fg="red"))
        for error in result.errors:
            click.echo(f"  ✗ {error}")

    click.echo(
        f"\nDone: uploaded {result.uploaded}, failed {result.failed}, "
        f"lines {result.total_lines}, bytes {format_bytes(result.total_bytes)}"
    )
    if include_skills:
        click.echo(
            f"Skills: uploaded {result.skills_uploaded}, "
            f"removed {result.skills_removed}, failed {result.skills_failed}"
        )


async def _run_once(config: InfluxionConfig, state_dir: Path) -> CycleResult:
    async with SyncEngine(config, state_dir) as engine:
        return await engine.run_cycle()


async def _run_forever(config: InfluxionConfig, state_dir: Path) -> None:
    async with SyncEngine(config, state_dir) as engine:
        scheduler = UploadScheduler(
            engine,
            interval=config.upload.interval_seconds,
            initial_delay=config.upload.initial_delay_ms / 1000,
        )
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()


@click.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run one upload cycle now (blocking)."""
    config = require_config(ctx)
    state_dir = get_state_dir(ctx)

    click.echo("Running Influxion upload cycle...")
    try:
        result = asyncio.run(_run_once(config, state_dir))
    except Exception as e:
        click.echo(f"Sync failed: {e}", err=True)
        sys.exit(1)

    display_summary(result, config.filter.include_skills)


@click.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Upload on the configured interval until interrupted."""
    config = require_config(ctx)
    state_dir = get_state_dir(ctx)

    click.echo(f"Uploading every {config.upload.every} from {state_dir} (Ctrl+C to stop)")
    try:
        asyncio.run(_run_forever(config, state_dir))
    except KeyboardInterrupt:
        click.echo("\nStopped.")
