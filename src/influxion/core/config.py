"""Configuration models for the influxion uploader.

This module defines:
- UploadConfig: Scheduling, retry and budget settings
- FilterConfig: Session/agent eligibility settings
- InfluxionConfig: Full plugin configuration
- parse_interval: Human-readable duration parsing ("15m", "1h", ...)
- load_plugin_config: Lenient validation (invalid config disables sync)
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.influxion.io"

_INTERVAL_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?$")

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_interval(value: str) -> float:
    """Parse an interval string into seconds.

    A bare number is interpreted as minutes.

    Args:
        value: Interval such as "500ms", "30s", "15m", "1h" or "2d".

    Returns:
        Interval length in seconds.

    Raises:
        ValueError: If the string is not a valid interval.
    """
    match = _INTERVAL_PATTERN.match(value.strip())
    if not match:
        raise ValueError(
            f'Invalid interval string: "{value}". Expected format: "15m", "1h", "30s", etc.'
        )
    amount = float(match.group(1))
    unit = match.group(2) or "m"
    return amount * _UNIT_SECONDS[unit]


class _ConfigModel(BaseModel):
    """Base model accepting both camelCase and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class UploadConfig(_ConfigModel):
    """Upload cycle settings."""

    every: str = "15m"
    retry_attempts: int = Field(default=3, ge=0)
    retry_backoff_ms: int = Field(default=5_000, ge=0)
    timeout_ms: int = Field(default=30_000, ge=1_000)
    max_files_per_run: int = Field(default=50, ge=1)
    max_bytes_per_run: int = Field(default=10 * 1024 * 1024, ge=1)
    initial_delay_ms: int = Field(default=10_000, ge=0)

    @field_validator("every")
    @classmethod
    def _check_every(cls, value: str) -> str:
        parse_interval(value)
        return value

    @property
    def interval_seconds(self) -> float:
        """Scheduling interval in seconds."""
        return parse_interval(self.every)


class AgentsFilter(_ConfigModel):
    """Agent allow/deny lists. Deny takes precedence over allow."""

    allow: list[str] | None = None
    deny: list[str] | None = None


class SessionsFilter(_ConfigModel):
    """Session id glob patterns that are never uploaded."""

    deny: list[str] | None = None


class FilterConfig(_ConfigModel):
    """Eligibility filter settings."""

    agents: AgentsFilter = Field(default_factory=AgentsFilter)
    sessions: SessionsFilter = Field(default_factory=SessionsFilter)
    min_messages: int = Field(default=2, ge=0)
    min_bytes: int = Field(default=512, ge=0)
    include_skills: bool = False

    @field_validator("agents", "sessions", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class InfluxionConfig(_ConfigModel):
    """Plugin configuration.

    Attributes:
        api_key: Bearer token for the ingestion API.
        deployment_id: Logical name of this installation.
        project_id: Project the uploads belong to.
        api_url: API base URL (no trailing slash).
        upload: Upload cycle settings.
        filter: Eligibility filter settings.
    """

    api_key: str = Field(min_length=1)
    deployment_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    api_url: str = DEFAULT_API_URL
    upload: UploadConfig = Field(default_factory=UploadConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)

    @field_validator("api_url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("apiUrl must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("upload", "filter", mode="before")
    @classmethod
    def _none_is_default(cls, value: Any) -> Any:
        return {} if value is None else value


def load_plugin_config(raw: dict[str, Any] | None) -> InfluxionConfig | None:
    """Validate raw plugin configuration.

    A missing or invalid configuration is not fatal: the problem is logged
    and None is returned, which callers treat as "uploads disabled".

    Args:
        raw: Plugin configuration mapping (may be None).

    Returns:
        Validated configuration, or None if it is missing or invalid.
    """
    try:
        return InfluxionConfig.model_validate(raw or {})
    except ValidationError as e:
        issues = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        logger.warning(
            f"Missing or invalid configuration, uploads disabled. "
            f"Set apiKey, deploymentId and projectId to enable. ({issues})"
        )
        return None
