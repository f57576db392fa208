"""Configuration utilities for the Influxion CLI.

This module provides shared configuration and formatting functions used
across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from influxion.client.host import PLUGIN_CONFIG_PATH, load_host_config, resolve_state_dir
from influxion.core.config import InfluxionConfig, load_plugin_config


def get_state_dir(ctx: click.Context) -> Path:
    """Get the host state directory chosen for this invocation.

    Returns:
        --state-dir if given, else $OPENCLAW_STATE_DIR or ~/.openclaw.
    """
    state_dir = ctx.obj.get("state_dir") if ctx.obj else None
    if state_dir:
        return Path(state_dir).expanduser()
    return resolve_state_dir()


def read_raw_config(state_dir: Path, config_file: Path | None) -> dict[str, Any] | None:
    """Read the raw plugin configuration.

    An explicit config file holds the plugin configuration object itself.
    Otherwise it is taken from the host configuration file.
    """
    if config_file is not None:
        data = json.loads(Path(config_file).read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else None

    raw = load_host_config(state_dir).resolve_path(PLUGIN_CONFIG_PATH)
    return dict(raw) if raw else None


def require_config(ctx: click.Context) -> InfluxionConfig:
    """Load and validate the plugin configuration or exit with an error."""
    state_dir = get_state_dir(ctx)
    config_file = ctx.obj.get("config_file") if ctx.obj else None
    try:
        raw = read_raw_config(state_dir, config_file)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error: Could not read config file: {e}", err=True)
        sys.exit(1)

    config = load_plugin_config(raw)
    if config is None:
        click.echo(
            "Error: Influxion is not configured. Set apiKey, deploymentId and projectId "
            f"under {PLUGIN_CONFIG_PATH} in openclaw.json or pass --config.",
            err=True,
        )
        sys.exit(1)
    return config


def configure_logging(verbose: bool) -> None:
    """Send influxion log records to stderr.

    Replaces any handler installed by a previous invocation.
    """
    influxion_logger = logging.getLogger("influxion")
    for handler in influxion_logger.handlers[:]:
        influxion_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("  %(message)s"))
    influxion_logger.addHandler(handler)
    influxion_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    influxion_logger.propagate = False


def mask_api_key(key: str) -> str:
    """Mask an API key for display.

    Keys of 12 characters or fewer are fully hidden.
    """
    if len(key) <= 12:
        return "***"
    return f"{key[:8]}...{key[-4:]}"


def format_bytes(size: int) -> str:
    """Format a byte count as B, KB or MB."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
