"""Shared types and dataclasses for sync operations.

This module provides:
- SessionCandidate, SkillCandidate: Items considered for upload this cycle
- SkillManifest: Complete skill scan partitioned into dirty/clean
- UploadedSession, UploadFailure, SessionUploadResult, SkillUploadResult:
  Uploader outcomes
- CycleResult: Summary of one sync cycle
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from influxion.core.types import SkillSource

T = TypeVar("T")


def session_ledger_key(agent_id: str, file_name: str) -> str:
    """Identity key of a transcript, e.g. "agents/main/sessions/abc.jsonl"."""
    return f"agents/{agent_id}/sessions/{file_name}"


def skill_ledger_key(agent_id: str, source: SkillSource, skill_dir: str) -> str:
    """Identity key of a skill, e.g. "skills/main/openclaw-bundled/github"."""
    return f"skills/{agent_id}/{source.value}/{skill_dir}"


@dataclass
class SessionCandidate:
    """A transcript file eligible for upload."""

    agent_id: str
    session_id: str
    file_path: Path
    size_bytes: int
    mtime: float
    ledger_key: str


@dataclass
class SkillCandidate:
    """A skill definition observed during a scan.

    Attributes:
        name: Display name (frontmatter name or directory name).
        source: Provenance of the skill directory.
        agent_name: Agent the record belongs to.
        skill_file_path: Absolute path to SKILL.md.
        raw_content: Full SKILL.md text.
        frontmatter: Parsed frontmatter ({} when absent or invalid).
        content_digest: Digest of raw_content.
        ledger_key: Identity key.
        available: Computed availability for this agent.
    """

    name: str
    source: SkillSource
    agent_name: str
    skill_file_path: Path
    raw_content: str
    frontmatter: dict[str, Any]
    content_digest: str
    ledger_key: str
    available: bool

    @property
    def description(self) -> str | None:
        value = self.frontmatter.get("description")
        return value if isinstance(value, str) else None

    def metadata_string(self, key: str) -> str | None:
        """String value from the frontmatter metadata block, if any."""
        metadata = self.frontmatter.get("metadata")
        if not isinstance(metadata, dict):
            return None
        value = metadata.get(key)
        return value if isinstance(value, str) else None


@dataclass
class SkillManifest:
    """Every skill found by a scan.

    Attributes:
        dirty: Skills whose content or availability changed.
        clean: Skills matching their ledger entry.
        removed: Ledger keys of previously uploaded skills not found.
    """

    dirty: list[SkillCandidate] = field(default_factory=list)
    clean: list[SkillCandidate] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def needs_upload(self) -> bool:
        return bool(self.dirty or self.removed)

    @property
    def all_skills(self) -> list[SkillCandidate]:
        return [*self.dirty, *self.clean]


@dataclass
class UploadFailure(Generic[T]):
    """An item whose upload failed after all retries."""

    item: T
    error: str


@dataclass
class UploadedSession:
    """A transcript accepted by the endpoint.

    captured_at is taken before the file is read, so any later write leaves
    the file dirty.
    """

    candidate: SessionCandidate
    uploaded_lines: int
    content_digest: str
    captured_at: str


@dataclass
class SessionUploadResult:
    """Outcome of uploading a list of transcripts."""

    uploaded: list[UploadedSession] = field(default_factory=list)
    failed: list[UploadFailure[SessionCandidate]] = field(default_factory=list)
    skipped: list[SessionCandidate] = field(default_factory=list)
    total_lines: int = 0
    total_bytes: int = 0


@dataclass
class SkillUploadResult:
    """Outcome of uploading a skill manifest."""

    uploaded: list[SkillCandidate] = field(default_factory=list)
    failed: list[UploadFailure[SkillCandidate]] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class CycleResult:
    """Summary of one sync cycle."""

    uploaded: int = 0
    failed: int = 0
    total_lines: int = 0
    total_bytes: int = 0
    skills_uploaded: int = 0
    skills_failed: int = 0
    skills_removed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def first_error(self) -> str | None:
        return self.errors[0] if self.errors else None
