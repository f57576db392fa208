"""Incremental upload of session transcripts and skill definitions.

Architecture:
    SessionCollector ┐
                     ├→ SyncEngine → SessionUploader / SkillUploader → IngestClient
    SkillCollector   ┘        ↑
                        UploadScheduler

Components:
- **SessionCollector**: Finds new or changed transcripts passing the filters
- **SkillCollector**: Scans skill sources per agent and computes availability
- **SessionUploader / SkillUploader**: Retrying batch submission
- **SyncEngine**: One cycle (load ledger, collect, upload, persist)
- **UploadScheduler**: Runs cycles on an interval

All public symbols are re-exported here.
"""

from influxion.client.sync.availability import SkillRequirements, evaluate
from influxion.client.sync.engine import SyncEngine
from influxion.client.sync.filters import (
    matches_glob_pattern,
    passes_agent_filter,
    passes_message_filter,
    passes_session_pattern_filter,
    passes_size_filter,
)
from influxion.client.sync.frontmatter import parse_frontmatter
from influxion.client.sync.retry import (
    DEFAULT_BACKOFF,
    DEFAULT_MAX_RETRIES,
    retry_with_backoff,
)
from influxion.client.sync.scheduler import UploadScheduler
from influxion.client.sync.sessions import SessionCollector
from influxion.client.sync.skills import SkillCollector, SkillDirs, resolve_skill_dirs
from influxion.client.sync.types import (
    CycleResult,
    SessionCandidate,
    SessionUploadResult,
    SkillCandidate,
    SkillManifest,
    SkillUploadResult,
    UploadedSession,
    UploadFailure,
)
from influxion.client.sync.upload import ByteBudget, SessionUploader, SkillUploader

__all__ = [
    # Collectors
    "SessionCollector",
    "SkillCollector",
    "SkillDirs",
    "resolve_skill_dirs",
    # Filters
    "matches_glob_pattern",
    "passes_agent_filter",
    "passes_message_filter",
    "passes_session_pattern_filter",
    "passes_size_filter",
    # Skills
    "SkillRequirements",
    "evaluate",
    "parse_frontmatter",
    # Upload
    "ByteBudget",
    "SessionUploader",
    "SkillUploader",
    "DEFAULT_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "retry_with_backoff",
    # Engine
    "SyncEngine",
    "UploadScheduler",
    # Types
    "CycleResult",
    "SessionCandidate",
    "SessionUploadResult",
    "SkillCandidate",
    "SkillManifest",
    "SkillUploadResult",
    "UploadedSession",
    "UploadFailure",
]
