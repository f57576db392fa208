"""Host (OpenClaw) configuration access.

This module provides:
- HostConfig: Read-only view over the host configuration tree
- is_truthy_value: Truthiness of a JSON configuration value
- resolve_state_dir: Host state directory (env override or ~/.openclaw)
- load_host_config: Read the host configuration file

All ad hoc traversal of the host configuration goes through
HostConfig.resolve_path, which walks mappings only and returns MISSING
for anything it cannot reach.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_AGENT_ID = "main"
STATE_DIR_ENV = "OPENCLAW_STATE_DIR"
HOST_CONFIG_FILENAME = "openclaw.json"
PLUGIN_CONFIG_PATH = "plugins.entries.influxion.config"


class _Missing:
    """Sentinel for unresolved configuration paths."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_truthy_value(value: Any) -> bool:
    """Truthiness of a JSON configuration value.

    Only MISSING, null, false, zero, NaN and the empty string are falsy.
    Empty objects and arrays count as set.
    """
    if value is MISSING or value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value == value and value != 0
    if isinstance(value, str):
        return value != ""
    return True


def normalize_agent_id(value: Any) -> str:
    """Normalize an agent id (trimmed, lower-case, blank -> "main")."""
    text = value.strip().lower() if isinstance(value, str) else ""
    return text or DEFAULT_AGENT_ID


def expand_home(path: str) -> str:
    """Expand a leading "~" to the user's home directory."""
    if path.startswith("~"):
        return str(Path.home()) + path[1:]
    return path


class HostConfig:
    """Read-only view over the host configuration.

    The underlying value is an arbitrary JSON-like tree; callers never
    index into it directly.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: Mapping[str, Any] = data or {}

    @property
    def is_empty(self) -> bool:
        return not self._data

    def resolve_path(self, path: str) -> Any:
        """Resolve a dot-separated path.

        Args:
            path: Path such as "skills.entries.github.enabled".

        Returns:
            The value at the path, or MISSING if any step is not a mapping
            or lacks the key.
        """
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return MISSING
            node = node[part]
        return node

    def is_truthy(self, path: str) -> bool:
        """Check whether a path resolves to a truthy value."""
        return is_truthy_value(self.resolve_path(path))

    # === Agents ===

    def _agent_entries(self) -> list[Mapping[str, Any]]:
        entries = self.resolve_path("agents.list")
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, Mapping)]

    def agent_ids(self) -> list[str]:
        """List configured agent ids, always at least the default agent."""
        ids: list[str] = []
        for entry in self._agent_entries():
            agent_id = normalize_agent_id(entry.get("id"))
            if agent_id not in ids:
                ids.append(agent_id)
        return ids or [DEFAULT_AGENT_ID]

    def default_agent_id(self) -> str:
        """Agent marked default, else the first listed, else "main"."""
        entries = self._agent_entries()
        if not entries:
            return DEFAULT_AGENT_ID
        chosen = next((e for e in entries if e.get("default")), entries[0])
        return normalize_agent_id(chosen.get("id"))

    def workspace_dir(self, state_dir: Path, agent_id: str) -> Path:
        """Resolve the workspace directory of an agent.

        An explicit per-agent workspace wins. The default agent falls back
        to agents.defaults.workspace and then <stateDir>/workspace; other
        agents use <stateDir>/workspace-<agentId>.
        """
        normalized = normalize_agent_id(agent_id)
        for entry in self._agent_entries():
            if normalize_agent_id(entry.get("id")) != normalized:
                continue
            workspace = entry.get("workspace")
            if isinstance(workspace, str) and workspace.strip():
                return Path(expand_home(workspace.strip()))
            break

        if normalized == self.default_agent_id():
            default_workspace = self.resolve_path("agents.defaults.workspace")
            if isinstance(default_workspace, str) and default_workspace.strip():
                return Path(expand_home(default_workspace.strip()))
            return Path(state_dir) / "workspace"
        return Path(state_dir) / f"workspace-{normalized}"

    # === Skills ===

    def skill_entry(self, skill_key: str) -> Mapping[str, Any]:
        """Per-skill settings (skills.entries.<key>), empty if absent."""
        entries = self.resolve_path("skills.entries")
        if isinstance(entries, Mapping):
            entry = entries.get(skill_key)
            if isinstance(entry, Mapping):
                return entry
        return {}

    def bundled_allowlist(self) -> list[str]:
        """Allow-list restricting bundled skills (empty = no restriction)."""
        allow = self.resolve_path("skills.allowBundled")
        if not isinstance(allow, list):
            return []
        return [item for item in allow if isinstance(item, str)]


def resolve_state_dir() -> Path:
    """Get the host state directory.

    Returns:
        $OPENCLAW_STATE_DIR if set, else ~/.openclaw.
    """
    env_dir = os.environ.get(STATE_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".openclaw"


def load_host_config(state_dir: Path) -> HostConfig:
    """Load the host configuration file from the state directory.

    A missing or unparseable file yields an empty configuration.
    """
    config_file = Path(state_dir) / HOST_CONFIG_FILENAME
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return HostConfig()
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read host config {config_file}: {e}")
        return HostConfig()
    if not isinstance(data, dict):
        logger.warning(f"Host config {config_file} is not an object, ignoring")
        return HostConfig()
    return HostConfig(data)
