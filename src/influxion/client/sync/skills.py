"""Skill definition collector.

This module provides:
- SkillDirs / resolve_skill_dirs: Installation-wide skill source directories
- SkillCollector: Scans every skill source for every agent

Sources:
    openclaw-managed        <stateDir>/skills                    (shared)
    openclaw-bundled        bundled with the host package       (shared, optional)
    agents-skills-personal  ~/.agents/skills                     (shared)
    openclaw-workspace      <workspace>/skills                   (per agent)
    agents-skills-project   <workspace>/.agents/skills           (per agent)

Shared sources are evaluated once per agent, because availability
depends on per-agent configuration. Per-agent sources are scanned once
per distinct workspace path, so two agents configured with the same
workspace do not produce duplicate records.

Each subdirectory holding a readable SKILL.md becomes one candidate;
anything else in a source directory is skipped.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

from influxion.client.host import HostConfig
from influxion.client.ledger import Ledger, is_skill_dirty
from influxion.client.probe import CapabilityProbe, SystemProbe
from influxion.client.sync.availability import SkillRequirements, evaluate
from influxion.client.sync.frontmatter import openclaw_metadata, parse_frontmatter
from influxion.client.sync.types import SkillCandidate, SkillManifest, skill_ledger_key
from influxion.core.digest import compute_digest
from influxion.core.types import SkillSource

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
BUNDLED_SKILLS_ENV = "OPENCLAW_BUNDLED_SKILLS_DIR"
HOST_PACKAGE = "openclaw"


@dataclass
class SkillDirs:
    """Installation-wide skill source directories."""

    managed: Path
    bundled: Path | None
    personal: Path


def walk_up_for_skills_dir(start: Path) -> Path | None:
    """Find the nearest "skills" directory at or above start."""
    directory = Path(start)
    while True:
        candidate = directory / "skills"
        if candidate.is_dir():
            return candidate
        if directory.parent == directory:
            return None
        directory = directory.parent


def resolve_bundled_skills_dir() -> Path | None:
    """Locate the skills bundled with the host package.

    $OPENCLAW_BUNDLED_SKILLS_DIR wins when set (and is only used if it
    exists). Otherwise the installed host package is located through its
    import metadata and the nearest skills directory above it is used.
    """
    env_dir = os.environ.get(BUNDLED_SKILLS_ENV)
    if env_dir:
        path = Path(env_dir).expanduser()
        return path if path.is_dir() else None

    try:
        spec = importlib.util.find_spec(HOST_PACKAGE)
    except (ImportError, ValueError):
        return None
    if spec is None:
        return None

    if spec.submodule_search_locations:
        start = Path(next(iter(spec.submodule_search_locations)))
    elif spec.origin:
        start = Path(spec.origin).parent
    else:
        return None
    return walk_up_for_skills_dir(start)


def resolve_skill_dirs(state_dir: Path) -> SkillDirs:
    """Resolve the shared skill source directories."""
    return SkillDirs(
        managed=Path(state_dir) / "skills",
        bundled=resolve_bundled_skills_dir(),
        personal=Path.home() / ".agents" / "skills",
    )


class SkillCollector:
    """Collects skill definitions for every configured agent.

    Usage:
        collector = SkillCollector(state_dir, host_config)
        changed = await collector.collect(ledger)             # dirty only
        manifest = await collector.collect_manifest(ledger)   # everything
    """

    def __init__(
        self,
        state_dir: Path,
        host_config: HostConfig,
        probe: CapabilityProbe | None = None,
        skill_dirs: SkillDirs | None = None,
    ) -> None:
        """Initialize the collector.

        Args:
            state_dir: Host state directory.
            host_config: Host configuration (agents, per-skill settings).
            probe: Environment probe for requirement checks.
            skill_dirs: Shared source directories (resolved if omitted).
        """
        self._state_dir = Path(state_dir)
        self._host_config = host_config
        self._probe = probe or SystemProbe()
        self._skill_dirs = skill_dirs or resolve_skill_dirs(self._state_dir)

    async def collect(self, ledger: Ledger) -> list[SkillCandidate]:
        """Return skills whose content or availability changed."""
        skills = await self.scan()
        return [
            skill
            for skill in skills
            if is_skill_dirty(ledger.skills.get(skill.ledger_key), skill.content_digest, skill.available)
        ]

    async def collect_manifest(self, ledger: Ledger) -> SkillManifest:
        """Return every skill, partitioned against the ledger.

        Ledger keys that were not observed are reported as removed.
        """
        manifest = SkillManifest()
        seen: set[str] = set()
        for skill in await self.scan():
            seen.add(skill.ledger_key)
            entry = ledger.skills.get(skill.ledger_key)
            if is_skill_dirty(entry, skill.content_digest, skill.available):
                manifest.dirty.append(skill)
            else:
                manifest.clean.append(skill)
        manifest.removed = sorted(key for key in ledger.skills if key not in seen)
        return manifest

    async def scan(self) -> list[SkillCandidate]:
        """Scan every source for every agent.

        Raises:
            OSError: For filesystem errors other than missing directories.
        """
        dirs = self._skill_dirs
        seen_workspaces: set[Path] = set()
        tasks = []

        for agent_id in self._host_config.agent_ids():
            workspace = self._host_config.workspace_dir(self._state_dir, agent_id)
            canonical = workspace.resolve()
            if canonical not in seen_workspaces:
                seen_workspaces.add(canonical)
                tasks.append(self._collect_from_dir(workspace / "skills", SkillSource.WORKSPACE, agent_id))
                tasks.append(
                    self._collect_from_dir(workspace / ".agents" / "skills", SkillSource.PROJECT, agent_id)
                )

            tasks.append(self._collect_from_dir(dirs.managed, SkillSource.MANAGED, agent_id))
            if dirs.bundled is not None:
                tasks.append(self._collect_from_dir(dirs.bundled, SkillSource.BUNDLED, agent_id))
            tasks.append(self._collect_from_dir(dirs.personal, SkillSource.PERSONAL, agent_id))

        batches = await asyncio.gather(*tasks)
        skills = [skill for batch in batches for skill in batch]
        logger.debug(f"Scanned {len(skills)} skill record(s)")
        return skills

    async def _collect_from_dir(
        self,
        directory: Path,
        source: SkillSource,
        agent_id: str,
    ) -> list[SkillCandidate]:
        try:
            entries = sorted(await aiofiles.os.listdir(directory))
        except (FileNotFoundError, NotADirectoryError):
            return []

        results: list[SkillCandidate] = []
        for entry in entries:
            skill_file = directory / entry / SKILL_FILENAME
            try:
                async with aiofiles.open(skill_file, encoding="utf-8") as f:
                    content = await f.read()
            except (OSError, UnicodeDecodeError):
                # Not a skill directory, or unreadable
                continue
            results.append(self._build_candidate(entry, skill_file, content, source, agent_id))
        return results

    def _build_candidate(
        self,
        dir_name: str,
        skill_file: Path,
        content: str,
        source: SkillSource,
        agent_id: str,
    ) -> SkillCandidate:
        frontmatter = parse_frontmatter(content)
        metadata = openclaw_metadata(frontmatter)

        name = frontmatter.get("name")
        if not isinstance(name, str) or not name:
            name = dir_name
        skill_key = metadata.get("skillKey")
        if not isinstance(skill_key, str) or not skill_key:
            skill_key = dir_name

        available = evaluate(
            source,
            skill_key,
            name,
            SkillRequirements.from_metadata(metadata),
            self._host_config,
            self._probe,
        )
        return SkillCandidate(
            name=name,
            source=source,
            agent_name=agent_id,
            skill_file_path=skill_file,
            raw_content=content,
            frontmatter=frontmatter,
            content_digest=compute_digest(content),
            ledger_key=skill_ledger_key(agent_id, source, dir_name),
            available=available,
        )
