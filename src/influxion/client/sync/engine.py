"""Sync engine running one upload cycle.

This module provides:
- SyncEngine: Loads the ledger, collects, uploads and persists

Cycle:
    idle → loading → collecting → uploading → persisting → idle

The ledger is owned by the engine for the duration of a cycle. Collectors
only read it, uploaders never see it, and it is only updated for items the
endpoint accepted. It is written back even when uploads failed, so accepted
items are never sent twice while failed ones stay dirty for the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from influxion.client.api import IngestClient
from influxion.client.host import HostConfig, load_host_config
from influxion.client.ledger import (
    FileEntry,
    Ledger,
    SkillEntry,
    load_ledger,
    save_ledger,
    utc_now_iso,
)
from influxion.client.probe import CapabilityProbe
from influxion.client.sync.sessions import SessionCollector
from influxion.client.sync.skills import SkillCollector, SkillDirs
from influxion.client.sync.types import (
    CycleResult,
    SessionCandidate,
    SessionUploadResult,
    SkillManifest,
)
from influxion.client.sync.upload import SessionUploader, SkillUploader
from influxion.core.config import InfluxionConfig
from influxion.core.types import SyncPhase

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs upload cycles for one host state directory.

    Usage:
        async with SyncEngine(config, state_dir) as engine:
            result = await engine.run_cycle()

    Concurrent calls to run_cycle() are not supported; the scheduler
    serializes them.
    """

    def __init__(
        self,
        config: InfluxionConfig,
        state_dir: Path,
        host_config: HostConfig | None = None,
        client: IngestClient | None = None,
        probe: CapabilityProbe | None = None,
        skill_dirs: SkillDirs | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Validated plugin configuration.
            state_dir: Host state directory.
            host_config: Host configuration (loaded from state_dir if omitted).
            client: Ingest client (built from config if omitted, and then
                owned and closed by the engine).
            probe: Environment probe for skill requirement checks.
            skill_dirs: Shared skill source directories (resolved if omitted).
            sleep: Delay function used between upload retries.
        """
        self._config = config
        self._state_dir = Path(state_dir)
        self._host_config = host_config if host_config is not None else load_host_config(self._state_dir)
        self._owns_client = client is None
        self._client = client or IngestClient.from_config(config)
        self._probe = probe
        self._skill_dirs = skill_dirs
        self._sleep = sleep
        self.phase = SyncPhase.IDLE

    @property
    def config(self) -> InfluxionConfig:
        return self._config

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    async def close(self) -> None:
        """Close the ingest client if the engine created it."""
        if self._owns_client:
            await self._client.close()

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def session_collector(self) -> SessionCollector:
        return SessionCollector(
            self._state_dir,
            self._config.filter,
            max_files=self._config.upload.max_files_per_run,
        )

    def skill_collector(self) -> SkillCollector:
        return SkillCollector(
            self._state_dir,
            self._host_config,
            probe=self._probe,
            skill_dirs=self._skill_dirs,
        )

    async def run_cycle(self) -> CycleResult:
        """Run one full sync cycle.

        Returns:
            Counts of uploaded and failed items plus any error messages.

        Raises:
            OSError: If the ledger cannot be read or written.
        """
        result = CycleResult()
        try:
            self.phase = SyncPhase.LOADING
            ledger = await load_ledger(self._state_dir)
            logger.info("Starting sync cycle")

            try:
                sessions, manifest = await self._collect(ledger, result)
                self.phase = SyncPhase.UPLOADING
                await self._upload_sessions(ledger, sessions, result)
                if manifest is not None:
                    await self._upload_skills(ledger, manifest, result)
            except Exception as e:
                logger.exception(f"Sync cycle failed: {e}")
                result.errors.append(str(e))

            self.phase = SyncPhase.PERSISTING
            ledger.last_run_at = utc_now_iso()
            await save_ledger(self._state_dir, ledger)
        finally:
            self.phase = SyncPhase.IDLE

        self._log_summary(result)
        return result

    async def _collect(
        self,
        ledger: Ledger,
        result: CycleResult,
    ) -> tuple[list[SessionCandidate], SkillManifest | None]:
        """Run both collectors concurrently.

        A collector that fails contributes nothing; its error is recorded
        and the other collector's output is still used.
        """
        self.phase = SyncPhase.COLLECTING
        tasks: list[Awaitable[Any]] = [self.session_collector().collect(ledger)]
        if self._config.filter.include_skills:
            tasks.append(self.skill_collector().collect_manifest(ledger))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        sessions: list[SessionCandidate] = []
        if isinstance(outcomes[0], Exception):
            logger.error(f"Session collection failed: {outcomes[0]}")
            result.errors.append(f"Session collection failed: {outcomes[0]}")
        else:
            sessions = outcomes[0]

        manifest: SkillManifest | None = None
        if len(outcomes) > 1:
            if isinstance(outcomes[1], Exception):
                logger.error(f"Skill collection failed: {outcomes[1]}")
                result.errors.append(f"Skill collection failed: {outcomes[1]}")
            else:
                manifest = outcomes[1]

        return sessions, manifest

    async def _upload_sessions(
        self,
        ledger: Ledger,
        sessions: list[SessionCandidate],
        result: CycleResult,
    ) -> None:
        if not sessions:
            logger.info("No new or modified session files")
            return

        uploader = SessionUploader(self._client, self._config, sleep=self._sleep)
        upload = await uploader.upload(sessions, self._config.upload.max_bytes_per_run)
        self._record_sessions(ledger, upload)

        result.uploaded = len(upload.uploaded)
        result.failed = len(upload.failed)
        result.total_lines = upload.total_lines
        result.total_bytes = upload.total_bytes
        for failure in upload.failed:
            logger.warning(f"Failed to upload {failure.item.ledger_key}: {failure.error}")
            result.errors.append(f"{failure.item.ledger_key}: {failure.error}")

    def _record_sessions(self, ledger: Ledger, upload: SessionUploadResult) -> None:
        for uploaded in upload.uploaded:
            candidate = uploaded.candidate
            ledger.files[candidate.ledger_key] = FileEntry(
                uploaded_at=uploaded.captured_at,
                uploaded_size_bytes=candidate.size_bytes,
                uploaded_lines=uploaded.uploaded_lines,
                content_digest=uploaded.content_digest,
            )

    async def _upload_skills(
        self,
        ledger: Ledger,
        manifest: SkillManifest,
        result: CycleResult,
    ) -> None:
        if not manifest.needs_upload:
            logger.info("No new or modified skills")
            return

        uploader = SkillUploader(self._client, self._config, sleep=self._sleep)
        upload = await uploader.upload(manifest)

        if not upload.succeeded:
            result.skills_failed = len(upload.failed)
            logger.warning(f"Failed to upload skill manifest: {upload.error}")
            result.errors.append(f"skills: {upload.error}")
            return

        # Clean entries are already current
        uploaded_at = utc_now_iso()
        for skill in manifest.dirty:
            ledger.skills[skill.ledger_key] = SkillEntry(
                uploaded_at=uploaded_at,
                content_digest=skill.content_digest,
                available=skill.available,
            )
        for key in manifest.removed:
            ledger.skills.pop(key, None)

        result.skills_uploaded = len(manifest.dirty)
        result.skills_removed = len(manifest.removed)

    def _log_summary(self, result: CycleResult) -> None:
        summary = (
            f"Sync cycle complete: {result.uploaded} session file(s) uploaded "
            f"({result.total_lines} lines, {result.total_bytes} bytes), "
            f"{result.failed} failed"
        )
        if self._config.filter.include_skills:
            summary += (
                f"; {result.skills_uploaded} skill(s) uploaded, "
                f"{result.skills_removed} removed, {result.skills_failed} failed"
            )
        if result.errors:
            logger.warning(f"{summary}. First error: {result.first_error}")
        else:
            logger.info(summary)
