"""Skill availability evaluation.

Evaluation order (first match wins):
    1. Disabled in host config (skills.entries.<key>.enabled is false) -> unavailable
    2. Bundled skill not on a non-empty skills.allowBundled list        -> unavailable
    3. metadata "always: true"                                          -> available
    4. Every declared requirement holds                                 -> available

Requirements (all must hold):
    - requires.bins: every binary is on the search path
    - requires.anyBins: at least one binary is on the search path
    - requires.env: each variable is set in the environment, in the
      per-skill env map, or implied by the apiKey shorthand for primaryEnv
    - os: current platform is listed
    - requires.config: each dot-path into host config is truthy

The only side effect is the search-path probe, which never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from influxion.client.host import MISSING, HostConfig, is_truthy_value
from influxion.client.probe import CapabilityProbe
from influxion.core.types import SkillSource


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


@dataclass(frozen=True)
class SkillRequirements:
    """Requirement declarations from a skill's metadata.openclaw block."""

    always: bool = False
    primary_env: str | None = None
    os: list[str] = field(default_factory=list)
    bins: list[str] = field(default_factory=list)
    any_bins: list[str] = field(default_factory=list)
    env: list[str] = field(default_factory=list)
    config: list[str] = field(default_factory=list)

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> SkillRequirements:
        """Build from a metadata.openclaw mapping, ignoring malformed fields."""
        requires = metadata.get("requires")
        if not isinstance(requires, Mapping):
            requires = {}
        primary_env = metadata.get("primaryEnv")
        return cls(
            always=metadata.get("always") is True,
            primary_env=primary_env if isinstance(primary_env, str) else None,
            os=_string_list(metadata.get("os")),
            bins=_string_list(requires.get("bins")),
            any_bins=_string_list(requires.get("anyBins")),
            env=_string_list(requires.get("env")),
            config=_string_list(requires.get("config")),
        )


def is_env_satisfied(
    env_name: str,
    skill_key: str,
    requirements: SkillRequirements,
    host_config: HostConfig,
    probe: CapabilityProbe,
) -> bool:
    """Check one required environment variable."""
    if probe.getenv(env_name):
        return True
    entry = host_config.skill_entry(skill_key)
    env_map = entry.get("env")
    if isinstance(env_map, Mapping) and is_truthy_value(env_map.get(env_name, MISSING)):
        return True
    return is_truthy_value(entry.get("apiKey", MISSING)) and requirements.primary_env == env_name


def evaluate(
    source: SkillSource,
    skill_key: str,
    name: str,
    requirements: SkillRequirements,
    host_config: HostConfig,
    probe: CapabilityProbe,
) -> bool:
    """Compute whether a skill is available to an agent.

    Args:
        source: Provenance of the skill.
        skill_key: Key used for per-skill host settings.
        name: Display name (also accepted by the bundled allow-list).
        requirements: Declared requirements.
        host_config: Host configuration.
        probe: Environment probe.

    Returns:
        True if the skill is usable.
    """
    if host_config.skill_entry(skill_key).get("enabled") is False:
        return False

    if source is SkillSource.BUNDLED:
        allowlist = host_config.bundled_allowlist()
        if allowlist and skill_key not in allowlist and name not in allowlist:
            return False

    if requirements.always:
        return True

    if not all(probe.has_binary(b) for b in requirements.bins):
        return False
    if requirements.any_bins and not any(probe.has_binary(b) for b in requirements.any_bins):
        return False
    if not all(
        is_env_satisfied(e, skill_key, requirements, host_config, probe)
        for e in requirements.env
    ):
        return False
    if requirements.os and probe.platform not in requirements.os:
        return False
    return all(host_config.is_truthy(path) for path in requirements.config)
