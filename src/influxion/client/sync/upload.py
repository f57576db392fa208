"""Batch uploaders for sessions and skills.

This module provides:
- BatchUploader: Shared retrying submission (one request per batch)
- SessionUploader: One batch per transcript, gated by a byte budget
- SkillUploader: One full-manifest batch for all skills
- build_session_envelopes / build_skill_envelope: Wire format builders

A batch is accepted or rejected by the endpoint as a whole, so retries
resend the whole batch and exhausting them fails every item in it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiofiles

from influxion.client.api import IngestClient, IngestError
from influxion.client.ledger import utc_now_iso
from influxion.client.sync.retry import retry_with_backoff
from influxion.client.sync.types import (
    SessionCandidate,
    SessionUploadResult,
    SkillCandidate,
    SkillManifest,
    SkillUploadResult,
    UploadedSession,
    UploadFailure,
)
from influxion.core.config import InfluxionConfig
from influxion.core.digest import compute_digest

logger = logging.getLogger(__name__)


class ByteBudget:
    """Admission control for the per-run byte limit.

    Only uploaded bytes are charged. A candidate fits while nothing has
    been charged yet, so a single oversized file cannot block uploads
    forever.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    def fits(self, size: int) -> bool:
        return self.used == 0 or self.used + size <= self.limit

    def charge(self, size: int) -> None:
        self.used += size


def build_session_envelopes(
    config: InfluxionConfig,
    candidate: SessionCandidate,
    lines: list[str],
    captured_at: str,
) -> list[dict[str, Any]]:
    """Wrap each transcript line in an envelope.

    Lines that are not valid JSON are sent as {"raw": line}.
    """
    envelopes = []
    for index, raw_line in enumerate(lines):
        try:
            payload: Any = json.loads(raw_line)
        except json.JSONDecodeError:
            payload = {"raw": raw_line}
        envelopes.append(
            {
                "deploymentId": config.deployment_id,
                "projectId": config.project_id,
                "agentId": candidate.agent_id,
                "agentName": candidate.agent_id,
                "sessionId": candidate.session_id,
                "sessionFile": candidate.ledger_key,
                "lineIndex": index,
                "capturedAt": captured_at,
                "payload": payload,
            }
        )
    return envelopes


def build_skill_envelope(
    config: InfluxionConfig,
    skill: SkillCandidate,
    include_content: bool,
) -> dict[str, Any]:
    """Build the manifest entry for one skill.

    Content is only included for dirty skills.
    """
    envelope: dict[str, Any] = {
        "deploymentId": config.deployment_id,
        "projectId": config.project_id,
        "agentName": skill.agent_name,
        "skillName": skill.name,
        "skillDescription": skill.description,
        "source": skill.source.value,
        "metadataVersion": skill.metadata_string("version"),
        "metadataAuthor": skill.metadata_string("author"),
        "contentHash": skill.content_digest,
        "available": skill.available,
    }
    if include_content:
        envelope["content"] = skill.raw_content
    return envelope


class BatchUploader:
    """Shared retry policy for batch submission."""

    def __init__(
        self,
        client: IngestClient,
        config: InfluxionConfig,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """Initialize the uploader.

        Args:
            client: Ingest API client.
            config: Plugin configuration (retry settings, ids).
            sleep: Delay function used between retries.
        """
        self._client = client
        self._config = config
        self._sleep = sleep

    async def _submit(self, send: Callable[[], Awaitable[object]]) -> str | None:
        """Send one batch with retries.

        Returns:
            None on success, else the last error message.
        """
        upload = self._config.upload
        try:
            await retry_with_backoff(
                send,
                max_retries=upload.retry_attempts,
                backoff=upload.retry_backoff_ms / 1000,
                retryable_exceptions=(IngestError,),
                sleep=self._sleep,
            )
        except IngestError as e:
            return str(e) or "Upload failed after all retry attempts"
        return None


class SessionUploader(BatchUploader):
    """Uploads transcripts, one request per file."""

    async def upload(
        self,
        candidates: list[SessionCandidate],
        max_bytes: int,
    ) -> SessionUploadResult:
        """Upload transcripts in order until the byte budget is used.

        Only successfully uploaded files are charged against the budget.

        Args:
            candidates: Transcripts to upload, in priority order.
            max_bytes: Byte budget for this run.

        Returns:
            Uploaded, failed and budget-skipped transcripts.
        """
        result = SessionUploadResult()
        budget = ByteBudget(max_bytes)

        for index, candidate in enumerate(candidates):
            if not budget.fits(candidate.size_bytes):
                result.skipped = list(candidates[index:])
                logger.info(
                    f"Byte budget reached ({budget.used}/{max_bytes} bytes), "
                    f"deferring {len(result.skipped)} session file(s)"
                )
                break

            captured_at = utc_now_iso()
            try:
                async with aiofiles.open(candidate.file_path, "rb") as f:
                    data = await f.read()
            except OSError as e:
                result.failed.append(UploadFailure(candidate, f"Could not read file: {e}"))
                continue

            text = data.decode("utf-8", errors="replace")
            lines = [line for line in text.split("\n") if line.strip()]
            envelopes = build_session_envelopes(self._config, candidate, lines, captured_at)

            error = await self._submit(lambda: self._client.ingest_sessions(envelopes))
            if error is not None:
                result.failed.append(UploadFailure(candidate, error))
                continue

            result.uploaded.append(
                UploadedSession(
                    candidate=candidate,
                    uploaded_lines=len(lines),
                    content_digest=compute_digest(data),
                    captured_at=captured_at,
                )
            )
            budget.charge(candidate.size_bytes)
            result.total_lines += len(lines)
            result.total_bytes += candidate.size_bytes

        return result


class SkillUploader(BatchUploader):
    """Uploads the skill manifest in a single request."""

    async def upload(self, manifest: SkillManifest) -> SkillUploadResult:
        """Send every skill; dirty ones carry their content.

        The manifest is complete, so the endpoint marks skills absent from
        it as removed.
        """
        if not manifest.needs_upload and not manifest.clean:
            return SkillUploadResult()

        dirty_keys = {skill.ledger_key for skill in manifest.dirty}
        skills = manifest.all_skills
        envelopes = [
            build_skill_envelope(self._config, skill, skill.ledger_key in dirty_keys)
            for skill in skills
        ]

        error = await self._submit(lambda: self._client.ingest_skills(envelopes, full_sync=True))
        if error is not None:
            return SkillUploadResult(
                failed=[UploadFailure(skill, error) for skill in skills],
                error=error,
            )
        return SkillUploadResult(uploaded=skills)
