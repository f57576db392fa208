"""Core module - Shared configuration, digests and types."""

from influxion.core.config import (
    FilterConfig,
    InfluxionConfig,
    UploadConfig,
    load_plugin_config,
    parse_interval,
)
from influxion.core.digest import compute_digest
from influxion.core.types import SkillSource, SyncPhase

__all__ = [
    # Config
    "FilterConfig",
    "InfluxionConfig",
    "UploadConfig",
    "load_plugin_config",
    "parse_interval",
    # Digest
    "compute_digest",
    # Types
    "SkillSource",
    "SyncPhase",
]
