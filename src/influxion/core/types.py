"""Shared types for influxion.

This module defines the closed enums used across collectors, uploaders
and the orchestrator.
"""

from __future__ import annotations

from enum import Enum


class SkillSource(str, Enum):
    """Provenance of a skill definition.

    The value is the wire tag sent to the ingestion endpoint and the
    middle segment of a skill ledger key.
    """

    BUNDLED = "openclaw-bundled"
    MANAGED = "openclaw-managed"
    WORKSPACE = "openclaw-workspace"
    PERSONAL = "agents-skills-personal"
    PROJECT = "agents-skills-project"


class SyncPhase(str, Enum):
    """Phase of the sync orchestrator.

    A cycle walks LOADING -> COLLECTING -> UPLOADING -> PERSISTING and
    returns to IDLE. SCHEDULED means a timer is armed for the next cycle.
    """

    IDLE = "idle"
    LOADING = "loading"
    COLLECTING = "collecting"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    SCHEDULED = "scheduled"
    STOPPED = "stopped"
