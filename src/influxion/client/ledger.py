"""Persistent upload ledger.

This module provides:
- Ledger: What has already been uploaded, keyed by stable identity keys
- FileEntry / SkillEntry: Last uploaded state of one transcript / skill
- load_ledger / save_ledger: JSON persistence under the host state directory
- is_file_dirty / is_skill_dirty: Change detection against the ledger

Architecture:
    The ledger is loaded once per cycle, mutated in memory only for items
    whose upload succeeded, and written back wholesale at the end of the
    cycle. Writes go to a temporary file that is renamed over the ledger,
    so a reader never observes a half-written file.

    A file with an unknown schema version (or one that cannot be parsed)
    is never partially trusted: it loads as an empty ledger and every
    item becomes dirty again.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Location of the ledger relative to the host state directory
LEDGER_RELATIVE_PATH = Path("extensions") / "influxion" / "state.json"


class LedgerFormatError(ValueError):
    """Persisted ledger content does not match the expected structure."""


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> float:
    """Convert an ISO-8601 timestamp to POSIX seconds.

    Naive timestamps are interpreted as UTC.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()


@dataclass
class FileEntry:
    """Last successfully uploaded state of a session transcript.

    Attributes:
        uploaded_at: ISO-8601 time of the upload.
        uploaded_size_bytes: File size at upload time.
        uploaded_lines: Number of non-empty lines sent.
        content_digest: Digest of the uploaded content.
    """

    uploaded_at: str
    uploaded_size_bytes: int
    uploaded_lines: int
    content_digest: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileEntry:
        """Create from the persisted JSON object."""
        try:
            return cls(
                uploaded_at=str(data["uploadedAt"]),
                uploaded_size_bytes=int(data["uploadedSizeBytes"]),
                uploaded_lines=int(data["uploadedLines"]),
                content_digest=str(data["contentDigest"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerFormatError(f"Invalid file entry: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON object."""
        return {
            "uploadedAt": self.uploaded_at,
            "uploadedSizeBytes": self.uploaded_size_bytes,
            "uploadedLines": self.uploaded_lines,
            "contentDigest": self.content_digest,
        }


@dataclass
class SkillEntry:
    """Last successfully uploaded state of a skill definition."""

    uploaded_at: str
    content_digest: str
    available: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkillEntry:
        """Create from the persisted JSON object."""
        try:
            available = data["available"]
            if not isinstance(available, bool):
                raise TypeError("available must be a boolean")
            return cls(
                uploaded_at=str(data["uploadedAt"]),
                content_digest=str(data["contentDigest"]),
                available=available,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerFormatError(f"Invalid skill entry: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON object."""
        return {
            "uploadedAt": self.uploaded_at,
            "contentDigest": self.content_digest,
            "available": self.available,
        }


@dataclass
class Ledger:
    """Record of everything that has been uploaded.

    Keys are identity keys: "agents/{agentId}/sessions/{fileName}" for
    transcripts and "skills/{agentId}/{source}/{skillDir}" for skills.
    """

    last_run_at: str | None = None
    files: dict[str, FileEntry] = field(default_factory=dict)
    skills: dict[str, SkillEntry] = field(default_factory=dict)
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_dict(cls, data: Any) -> Ledger:
        """Create from the persisted JSON document.

        Raises:
            LedgerFormatError: If the document is structurally invalid.
        """
        if not isinstance(data, dict):
            raise LedgerFormatError("Ledger document is not an object")

        files = data.get("files") or {}
        skills = data.get("skills") or {}
        if not isinstance(files, dict) or not isinstance(skills, dict):
            raise LedgerFormatError("Ledger files/skills must be objects")

        last_run_at = data.get("lastRunAt")
        if last_run_at is not None and not isinstance(last_run_at, str):
            raise LedgerFormatError("lastRunAt must be a string or null")

        return cls(
            last_run_at=last_run_at,
            files={key: FileEntry.from_dict(entry) for key, entry in files.items()},
            skills={key: SkillEntry.from_dict(entry) for key, entry in skills.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON document."""
        return {
            "schemaVersion": self.schema_version,
            "lastRunAt": self.last_run_at,
            "files": {key: entry.to_dict() for key, entry in self.files.items()},
            "skills": {key: entry.to_dict() for key, entry in self.skills.items()},
        }


def ledger_path(state_dir: Path) -> Path:
    """Path of the ledger file for a host state directory."""
    return Path(state_dir) / LEDGER_RELATIVE_PATH


async def load_ledger(state_dir: Path) -> Ledger:
    """Load the ledger from the host state directory.

    Never fails for a missing file. A file with a different schema version,
    or one that cannot be parsed, loads as an empty ledger.

    Args:
        state_dir: Host state directory.

    Returns:
        The persisted ledger, or an empty one.

    Raises:
        OSError: For I/O failures other than the file not existing.
    """
    path = ledger_path(state_dir)
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            raw = await f.read()
    except FileNotFoundError:
        return Ledger()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ledger at {path} is not valid JSON, starting fresh: {e}")
        return Ledger()

    if not isinstance(data, dict) or data.get("schemaVersion") != SCHEMA_VERSION:
        logger.debug(f"Ledger at {path} has unsupported schema, starting fresh")
        return Ledger()

    try:
        return Ledger.from_dict(data)
    except LedgerFormatError as e:
        logger.warning(f"Ledger at {path} is malformed, starting fresh: {e}")
        return Ledger()


async def save_ledger(state_dir: Path, ledger: Ledger) -> None:
    """Persist the ledger atomically.

    The document is pretty-printed with a trailing newline, written to a
    temporary sibling file and renamed over the ledger.

    Args:
        state_dir: Host state directory.
        ledger: Ledger to write.
    """
    path = ledger_path(state_dir)
    await aiofiles.os.makedirs(path.parent, exist_ok=True)

    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp")
    content = json.dumps(ledger.to_dict(), indent=2) + "\n"
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
        await aiofiles.os.replace(tmp_path, path)
    except BaseException:
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)
        raise


def is_file_dirty(entry: FileEntry | None, size_bytes: int, mtime: float) -> bool:
    """Check whether a transcript changed since it was last uploaded.

    Size is compared as well as mtime because a backdated or skewed mtime
    could otherwise hide a real change.

    Args:
        entry: Ledger entry (None if never uploaded).
        size_bytes: Current file size.
        mtime: Current modification time (POSIX seconds).

    Returns:
        True if the file needs uploading.
    """
    if entry is None:
        return True
    try:
        uploaded_at = parse_timestamp(entry.uploaded_at)
    except ValueError:
        return True
    return mtime > uploaded_at or size_bytes != entry.uploaded_size_bytes


def is_skill_dirty(entry: SkillEntry | None, digest: str, available: bool) -> bool:
    """Check whether a skill changed since it was last uploaded.

    An availability flip alone makes the skill dirty, even with unchanged
    content.
    """
    if entry is None:
        return True
    return entry.content_digest != digest or entry.available != available
