"""Status command for the Influxion CLI.

Commands:
- status: Show configuration, last run and pending session files
"""

from __future__ import annotations

import asyncio

import click

from influxion.client.cli.config import (
    format_bytes,
    get_state_dir,
    mask_api_key,
    require_config,
)
from influxion.client.ledger import Ledger, load_ledger
from influxion.client.sync.sessions import SessionCollector
from influxion.client.sync.types import SessionCandidate


@click.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show upload status and pending session files."""
    config = require_config(ctx)
    state_dir = get_state_dir(ctx)

    async def _gather() -> tuple[Ledger, list[SessionCandidate]]:
        ledger = await load_ledger(state_dir)
        collector = SessionCollector(
            state_dir,
            config.filter,
            max_files=config.upload.max_files_per_run,
        )
        return ledger, await collector.collect(ledger)

    ledger, pending = asyncio.run(_gather())

    click.echo("")
    click.echo("Influxion Status")
    click.echo("─" * 32)
    click.echo(f"  API Key:        {mask_api_key(config.api_key)}")
    click.echo(f"  Deployment ID:  {config.deployment_id}")
    click.echo(f"  API URL:        {config.api_url}")
    click.echo(f"  Upload every:   {config.upload.every}")
    click.echo(f"  Last run:       {ledger.last_run_at or 'never'}")
    click.echo(f"  Pending files:  {len(pending)}")
    click.echo(f"  Ledger entries: {len(ledger.files)}")
    if config.filter.include_skills:
        click.echo(f"  Skills synced:  {len(ledger.skills)}")

    if pending:
        click.echo("")
        click.echo("  Pending:")
        for candidate in pending:
            click.echo(
                f"    {candidate.agent_id}/{candidate.session_id}  "
                f"({format_bytes(candidate.size_bytes)})"
            )
    click.echo("")
