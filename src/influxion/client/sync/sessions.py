"""Session transcript collector.

This module provides:
- SessionCollector: Finds transcript files that are eligible for upload

Layout scanned:
    <stateDir>/agents/<agentId>/sessions/<sessionId>.jsonl

Eligibility (cheapest first):
    1. Agent passes the allow/deny lists
    2. Session id matches no deny pattern
    3. File is new or changed according to the ledger
    4. File meets the minimum byte size
    5. File has at least the minimum number of non-empty lines

Agents are scanned concurrently. Scanning stops everywhere once the
per-run file limit is reached.
"""

from __future__ import annotations

import asyncio
import logging
import stat
from pathlib import Path

import aiofiles.os

from influxion.client.ledger import Ledger, is_file_dirty
from influxion.client.sync.filters import (
    passes_agent_filter,
    passes_message_filter,
    passes_session_pattern_filter,
    passes_size_filter,
)
from influxion.client.sync.types import SessionCandidate, session_ledger_key
from influxion.core.config import FilterConfig

logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".jsonl"

# Absence conditions that mean "nothing to collect here"
_ABSENT = (FileNotFoundError, NotADirectoryError)


class _ScanBudget:
    """Shared candidate counter across concurrent agent scans."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._used = 0

    @property
    def exhausted(self) -> bool:
        return self._used >= self._limit

    def claim(self) -> bool:
        if self.exhausted:
            return False
        self._used += 1
        return True


async def _list_dir(path: Path) -> list[str]:
    """List a directory, sorted; a missing directory is empty."""
    try:
        return sorted(await aiofiles.os.listdir(path))
    except _ABSENT:
        return []


class SessionCollector:
    """Collects eligible session transcripts.

    Usage:
        collector = SessionCollector(state_dir, config.filter, max_files=50)
        candidates = await collector.collect(ledger)
    """

    def __init__(
        self,
        state_dir: Path,
        filter_config: FilterConfig,
        max_files: int,
    ) -> None:
        """Initialize the collector.

        Args:
            state_dir: Host state directory.
            filter_config: Eligibility settings.
            max_files: Maximum number of candidates per run.
        """
        self._agents_dir = Path(state_dir) / "agents"
        self._filter = filter_config
        self._max_files = max_files

    async def collect(self, ledger: Ledger) -> list[SessionCandidate]:
        """Scan all agents and return eligible transcripts.

        Args:
            ledger: Read-only ledger snapshot used for dirtiness checks.

        Returns:
            At most max_files candidates, ordered by agent then file name.

        Raises:
            OSError: For filesystem errors other than missing paths.
        """
        agent_ids = [
            agent_id
            for agent_id in await _list_dir(self._agents_dir)
            if passes_agent_filter(agent_id, self._filter)
        ]
        if not agent_ids:
            return []

        budget = _ScanBudget(self._max_files)
        batches = await asyncio.gather(
            *(self._scan_agent(agent_id, ledger, budget) for agent_id in agent_ids)
        )
        candidates = [candidate for batch in batches for candidate in batch]
        logger.debug(f"Found {len(candidates)} eligible session file(s)")
        return candidates[: self._max_files]

    async def _scan_agent(
        self,
        agent_id: str,
        ledger: Ledger,
        budget: _ScanBudget,
    ) -> list[SessionCandidate]:
        sessions_dir = self._agents_dir / agent_id / "sessions"
        results: list[SessionCandidate] = []

        for filename in await _list_dir(sessions_dir):
            if budget.exhausted:
                break
            if not filename.endswith(SESSION_SUFFIX):
                continue

            session_id = filename[: -len(SESSION_SUFFIX)]
            if not passes_session_pattern_filter(session_id, self._filter):
                continue

            file_path = sessions_dir / filename
            try:
                file_stat = await aiofiles.os.stat(file_path)
            except _ABSENT:
                continue
            if not stat.S_ISREG(file_stat.st_mode):
                continue

            ledger_key = session_ledger_key(agent_id, filename)
            if not is_file_dirty(ledger.files.get(ledger_key), file_stat.st_size, file_stat.st_mtime):
                continue

            if not passes_size_filter(file_stat.st_size, self._filter):
                continue

            try:
                if not await passes_message_filter(file_path, self._filter):
                    continue
            except _ABSENT:
                continue

            if not budget.claim():
                break
            results.append(
                SessionCandidate(
                    agent_id=agent_id,
                    session_id=session_id,
                    file_path=file_path,
                    size_bytes=file_stat.st_size,
                    mtime=file_stat.st_mtime,
                    ledger_key=ledger_key,
                )
            )

        return results
