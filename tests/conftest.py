"""Pytest fixtures shared by the influxion tests.

This module provides fixtures for a throwaway host state directory with
session transcripts and skill directories laid out the way the host
writes them.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def reset_influxion_logger() -> Generator[None, None, None]:
    """Undo handlers installed by CLI invocations so caplog keeps working."""
    yield
    influxion_logger = logging.getLogger("influxion")
    for handler in influxion_logger.handlers[:]:
        influxion_logger.removeHandler(handler)
    influxion_logger.setLevel(logging.NOTSET)
    influxion_logger.propagate = True


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Create an empty host state directory."""
    path = tmp_path / "openclaw"
    path.mkdir()
    return path


@pytest.fixture
def write_session(state_dir: Path) -> Callable[..., Path]:
    """Write a transcript to <state>/agents/<agent>/sessions/<id>.jsonl.

    The file mtime is set in the past so that an upload stamped "now"
    is strictly newer.
    """

    def _write(
        agent_id: str,
        session_id: str,
        lines: list[Any] | None = None,
        raw: str | None = None,
        age: float = 60.0,
    ) -> Path:
        sessions_dir = state_dir / "agents" / agent_id / "sessions"
        sessions_dir.mkdir(parents=True, exist_ok=True)
        path = sessions_dir / f"{session_id}.jsonl"
        if raw is None:
            items = lines if lines is not None else [{"role": "user"}, {"role": "assistant"}]
            raw = "".join(json.dumps(item) + "\n" for item in items)
        path.write_text(raw, encoding="utf-8")
        stamp = time.time() - age
        os.utime(path, (stamp, stamp))
        return path

    return _write


@pytest.fixture
def write_skill() -> Callable[..., Path]:
    """Write <root>/<dir_name>/SKILL.md with optional YAML frontmatter."""

    def _write(root: Path, dir_name: str, frontmatter: str | None = None, body: str = "Body\n") -> Path:
        skill_dir = root / dir_name
        skill_dir.mkdir(parents=True, exist_ok=True)
        content = body if frontmatter is None else f"---\n{frontmatter}---\n{body}"
        path = skill_dir / "SKILL.md"
        path.write_text(content, encoding="utf-8")
        return path

    return _write
