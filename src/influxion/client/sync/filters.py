"""Eligibility filters for session transcripts.

This module provides the predicates the session collector applies,
cheapest first:
- passes_agent_filter: Agent allow/deny lists (deny wins)
- passes_session_pattern_filter: Session id deny globs
- passes_size_filter: Minimum byte size
- passes_message_filter: Minimum number of non-empty lines (reads the file)

Glob patterns support only "*" (any run of characters); every other
character matches itself literally.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import aiofiles

from influxion.core.config import FilterConfig


def passes_agent_filter(agent_id: str, filter_config: FilterConfig) -> bool:
    """Check an agent against the allow/deny lists.

    Deny wins: an agent on the deny list is excluded even if it is also
    allow-listed. An empty or absent allow list does not restrict.
    """
    agents = filter_config.agents
    if agents.deny and agent_id in agents.deny:
        return False
    if agents.allow and agent_id not in agents.allow:
        return False
    return True


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile("^" + ".*".join(parts) + "$", re.DOTALL)


def matches_glob_pattern(name: str, pattern: str) -> bool:
    """Match a name against a "*"-only glob pattern.

    Args:
        name: Value to test, e.g. a session id.
        pattern: Pattern such as "tmp-*".

    Returns:
        True if the whole name matches.
    """
    return _compile_glob(pattern).match(name) is not None


def passes_session_pattern_filter(session_id: str, filter_config: FilterConfig) -> bool:
    """Reject a session id matching any deny pattern."""
    deny = filter_config.sessions.deny
    if not deny:
        return True
    return not any(matches_glob_pattern(session_id, pattern) for pattern in deny)


def passes_size_filter(size_bytes: int, filter_config: FilterConfig) -> bool:
    """Check the minimum size threshold (inclusive)."""
    return size_bytes >= filter_config.min_bytes


async def count_jsonl_lines(file_path: Path, max_lines: int) -> int:
    """Count non-empty lines, stopping once max_lines is reached.

    Args:
        file_path: JSONL file to read.
        max_lines: Stop counting at this many lines.

    Returns:
        Number of non-empty lines, capped at max_lines.
    """
    count = 0
    if max_lines <= 0:
        return count
    async with aiofiles.open(file_path, encoding="utf-8", errors="replace") as f:
        async for line in f:
            if line.strip():
                count += 1
                if count >= max_lines:
                    break
    return count


async def passes_message_filter(file_path: Path, filter_config: FilterConfig) -> bool:
    """Check the minimum line count. Reads the file, so call it last."""
    if filter_config.min_messages <= 0:
        return True
    count = await count_jsonl_lines(file_path, filter_config.min_messages)
    return count >= filter_config.min_messages
