"""SKILL.md frontmatter parsing.

Frontmatter is the YAML block between a leading "---" line and the next
"---" line. Parsing is fail-open: missing, unterminated or invalid
frontmatter yields an empty mapping instead of an error.
"""

from __future__ import annotations

from typing import Any

import yaml


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split a SKILL.md document into frontmatter text and body.

    Returns:
        (frontmatter_text, body); frontmatter_text is None when absent.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != "---":
        return None, text
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "".join(lines[1:i]), "".join(lines[i + 1 :])
    return None, text


def parse_frontmatter(text: str) -> dict[str, Any]:
    """Parse the frontmatter of a SKILL.md document.

    Args:
        text: Full document text.

    Returns:
        Frontmatter mapping, or {} if absent or not a YAML mapping.
    """
    fm_text, _ = split_frontmatter(text)
    if not fm_text or not fm_text.strip():
        return {}
    try:
        parsed = yaml.safe_load(fm_text)
    except yaml.YAMLError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def openclaw_metadata(frontmatter: dict[str, Any]) -> dict[str, Any]:
    """Host-specific block at metadata.openclaw ({} if absent)."""
    metadata = frontmatter.get("metadata")
    if not isinstance(metadata, dict):
        return {}
    block = metadata.get("openclaw")
    return block if isinstance(block, dict) else {}
