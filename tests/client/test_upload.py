"""Tests for the batch uploaders."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from influxion.client.api import IngestClient
from influxion.client.sync.types import SessionCandidate, SkillCandidate, SkillManifest
from influxion.client.sync.upload import (
    ByteBudget,
    SessionUploader,
    SkillUploader,
    build_session_envelopes,
    build_skill_envelope,
)
from influxion.core.config import InfluxionConfig
from influxion.core.digest import compute_digest
from influxion.core.types import SkillSource

SESSIONS_URL = "http://test/v1/openclaw/ingest/sessions"
SKILLS_URL = "http://test/v1/openclaw/ingest/skills"


def make_config(retry_attempts: int = 0, backoff_ms: int = 1000) -> InfluxionConfig:
    """Create a config pointing at the mocked API."""
    return InfluxionConfig.model_validate(
        {
            "apiKey": "sk-test-abcdefghijkl",
            "deploymentId": "dep-1",
            "projectId": "proj-1",
            "apiUrl": "http://test",
            "upload": {"retryAttempts": retry_attempts, "retryBackoffMs": backoff_ms},
        }
    )


def make_session(path: Path, agent_id: str = "main") -> SessionCandidate:
    return SessionCandidate(
        agent_id=agent_id,
        session_id=path.stem,
        file_path=path,
        size_bytes=path.stat().st_size,
        mtime=path.stat().st_mtime,
        ledger_key=f"agents/{agent_id}/sessions/{path.name}",
    )


def make_skill(name: str, content: str = "Body\n", available: bool = True) -> SkillCandidate:
    return SkillCandidate(
        name=name,
        source=SkillSource.MANAGED,
        agent_name="main",
        skill_file_path=Path(f"/skills/{name}/SKILL.md"),
        raw_content=content,
        frontmatter={"description": f"{name} skill", "metadata": {"version": "1.0", "author": "me"}},
        content_digest=compute_digest(content),
        ledger_key=f"skills/main/openclaw-managed/{name}",
        available=available,
    )


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestByteBudget:
    """Tests for ByteBudget."""

    def test_partial_fill(self) -> None:
        """Sizes [3, 4, 5] with budget 7 fit exactly the first two."""
        budget = ByteBudget(7)
        fitted = []
        for size in (3, 4, 5):
            fitted.append(budget.fits(size))
            if fitted[-1]:
                budget.charge(size)
        assert fitted == [True, True, False]

    def test_first_item_always_fits(self) -> None:
        budget = ByteBudget(10)
        assert budget.fits(50) is True
        budget.charge(50)
        assert budget.fits(1) is False

    def test_uncharged_size_leaves_room(self) -> None:
        budget = ByteBudget(5)
        budget.charge(3)
        assert budget.fits(2) is True
        assert budget.fits(3) is False


class TestEnvelopes:
    """Tests for wire envelope builders."""

    def test_session_envelopes(self, tmp_path: Path) -> None:
        path = tmp_path / "abc.jsonl"
        path.write_text("x", encoding="utf-8")
        candidate = make_session(path)

        envelopes = build_session_envelopes(
            make_config(), candidate, ['{"role": "user"}', "not json"], "2025-01-01T00:00:00.000Z"
        )

        assert envelopes == [
            {
                "deploymentId": "dep-1",
                "projectId": "proj-1",
                "agentId": "main",
                "agentName": "main",
                "sessionId": "abc",
                "sessionFile": "agents/main/sessions/abc.jsonl",
                "lineIndex": 0,
                "capturedAt": "2025-01-01T00:00:00.000Z",
                "payload": {"role": "user"},
            },
            {
                "deploymentId": "dep-1",
                "projectId": "proj-1",
                "agentId": "main",
                "agentName": "main",
                "sessionId": "abc",
                "sessionFile": "agents/main/sessions/abc.jsonl",
                "lineIndex": 1,
                "capturedAt": "2025-01-01T00:00:00.000Z",
                "payload": {"raw": "not json"},
            },
        ]

    def test_skill_envelope(self) -> None:
        skill = make_skill("github")

        envelope = build_skill_envelope(make_config(), skill, include_content=True)

        assert envelope == {
            "deploymentId": "dep-1",
            "projectId": "proj-1",
            "agentName": "main",
            "skillName": "github",
            "skillDescription": "github skill",
            "source": "openclaw-managed",
            "metadataVersion": "1.0",
            "metadataAuthor": "me",
            "contentHash": skill.content_digest,
            "available": True,
            "content": "Body\n",
        }

    def test_skill_envelope_without_content(self) -> None:
        envelope = build_skill_envelope(make_config(), make_skill("github"), include_content=False)
        assert "content" not in envelope


class TestSessionUploader:
    """Tests for SessionUploader."""

    @pytest.fixture
    def session_file(self, tmp_path: Path) -> Callable[[str, str], SessionCandidate]:
        def _make(name: str, content: str) -> SessionCandidate:
            path = tmp_path / f"{name}.jsonl"
            path.write_text(content, encoding="utf-8")
            return make_session(path)

        return _make

    @pytest.mark.asyncio
    async def test_one_request_per_file(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        first = session_file("a", '{"n": 1}\n\n{"n": 2}\n')
        second = session_file("b", '{"n": 3}\n')

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([first, second], max_bytes=10_000)

        assert [u.candidate for u in result.uploaded] == [first, second]
        assert [u.uploaded_lines for u in result.uploaded] == [2, 1]
        assert result.uploaded[0].content_digest == compute_digest(first.file_path.read_bytes())
        assert result.total_lines == 3
        assert result.total_bytes == first.size_bytes + second.size_bytes
        assert result.failed == []

        bodies = [json.loads(r.content) for r in httpx_mock.get_requests()]
        assert [[line["payload"] for line in body["lines"]] for body in bodies] == [
            [{"n": 1}, {"n": 2}],
            [{"n": 3}],
        ]

    @pytest.mark.asyncio
    async def test_budget_skips_remaining(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        a = session_file("a", "12\n")  # 3 bytes
        b = session_file("b", "123\n")  # 4 bytes
        c = session_file("c", "1234\n")  # 5 bytes

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([a, b, c], max_bytes=7)

        assert [u.candidate for u in result.uploaded] == [a, b]
        assert result.skipped == [c]
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    @pytest.mark.httpx_mock(assert_all_responses_were_requested=False)
    async def test_failed_file_not_charged(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        """A failed upload leaves its bytes available to later files."""
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", status_code=500)
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        a = session_file("a", "1234\n")  # 5 bytes
        b = session_file("b", "1234\n")  # 5 bytes
        c = session_file("c", "1234\n")  # 5 bytes

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([a, b, c], max_bytes=8)

        assert [f.item for f in result.failed] == [a]
        assert [u.candidate for u in result.uploaded] == [b]
        assert result.skipped == [c]

    @pytest.mark.asyncio
    async def test_uploaded_session_carries_capture_time(  # type: ignore[no-untyped-def]
        self, httpx_mock, session_file
    ) -> None:
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        candidate = session_file("a", "{}\n")

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([candidate], max_bytes=10_000)

        body = json.loads(httpx_mock.get_request().content)
        assert result.uploaded[0].captured_at == body["lines"][0]["capturedAt"]

    @pytest.mark.asyncio
    async def test_retry_then_success(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", status_code=500)
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        candidate = session_file("a", "{}\n")
        sleep = RecordingSleep()

        async with IngestClient("http://test", "key") as client:
            uploader = SessionUploader(client, make_config(retry_attempts=3, backoff_ms=2000), sleep=sleep)
            result = await uploader.upload([candidate], max_bytes=10_000)

        assert len(result.uploaded) == 1
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_batch(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        """Every attempt failing reports the file failed with the last error."""
        for _ in range(3):
            httpx_mock.add_response(url=SESSIONS_URL, method="POST", status_code=502, text="bad gateway")
        candidate = session_file("a", "{}\n")
        sleep = RecordingSleep()

        async with IngestClient("http://test", "key") as client:
            uploader = SessionUploader(client, make_config(retry_attempts=2, backoff_ms=1000), sleep=sleep)
            result = await uploader.upload([candidate], max_bytes=10_000)

        assert result.uploaded == []
        assert [f.item for f in result.failed] == [candidate]
        assert result.failed[0].error == "HTTP 502: bad gateway"
        assert result.total_lines == 0
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_files(self, httpx_mock, session_file) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=SESSIONS_URL)
        httpx_mock.add_response(url=SESSIONS_URL, method="POST", json={})
        a = session_file("a", "{}\n")
        b = session_file("b", "{}\n")

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([a, b], max_bytes=10_000)

        assert [f.item for f in result.failed] == [a]
        assert [u.candidate for u in result.uploaded] == [b]

    @pytest.mark.asyncio
    async def test_unreadable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "gone.jsonl"
        path.write_text("{}\n", encoding="utf-8")
        candidate = make_session(path)
        path.unlink()

        async with IngestClient("http://test", "key") as client:
            result = await SessionUploader(client, make_config()).upload([candidate], max_bytes=10_000)

        assert [f.item for f in result.failed] == [candidate]
        assert "Could not read file" in result.failed[0].error


class TestSkillUploader:
    """Tests for SkillUploader."""

    @pytest.mark.asyncio
    async def test_full_manifest(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Clean skills are listed without content, dirty ones with it."""
        httpx_mock.add_response(url=SKILLS_URL, method="POST", json={})
        manifest = SkillManifest(dirty=[make_skill("new")], clean=[make_skill("old")])

        async with IngestClient("http://test", "key") as client:
            result = await SkillUploader(client, make_config()).upload(manifest)

        assert result.succeeded is True
        assert [s.name for s in result.uploaded] == ["new", "old"]
        body = json.loads(httpx_mock.get_request().content)
        assert body["fullSync"] is True
        assert [(s["skillName"], "content" in s) for s in body["skills"]] == [("new", True), ("old", False)]

    @pytest.mark.asyncio
    async def test_failure_marks_all_failed(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=SKILLS_URL, method="POST", status_code=500, text="down")
        manifest = SkillManifest(dirty=[make_skill("a")], clean=[make_skill("b")])

        async with IngestClient("http://test", "key") as client:
            result = await SkillUploader(client, make_config()).upload(manifest)

        assert result.succeeded is False
        assert result.error == "HTTP 500: down"
        assert [f.item.name for f in result.failed] == ["a", "b"]
        assert result.uploaded == []

    @pytest.mark.asyncio
    async def test_removal_only_manifest(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A manifest with only removals still reaches the endpoint."""
        httpx_mock.add_response(url=SKILLS_URL, method="POST", status_code=500, text="down")
        manifest = SkillManifest(removed=["skills/main/openclaw-managed/gone"])

        async with IngestClient("http://test", "key") as client:
            result = await SkillUploader(client, make_config()).upload(manifest)

        assert result.succeeded is False
        assert json.loads(httpx_mock.get_request().content)["skills"] == []

    @pytest.mark.asyncio
    async def test_empty_manifest_sends_nothing(self) -> None:
        async with IngestClient("http://test", "key") as client:
            result = await SkillUploader(client, make_config()).upload(SkillManifest())

        assert result.succeeded is True
        assert result.uploaded == []
