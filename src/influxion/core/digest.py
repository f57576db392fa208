"""Content digests for change detection."""

from __future__ import annotations

import hashlib

DIGEST_PREFIX = "sha256:"


def compute_digest(content: str | bytes) -> str:
    """Compute the content digest of a string or byte sequence.

    Strings are hashed as their UTF-8 encoding, so a text and its encoded
    bytes produce the same digest.

    Args:
        content: Text or raw bytes.

    Returns:
        Digest string, e.g. "sha256:9f86d08...".
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return DIGEST_PREFIX + hashlib.sha256(content).hexdigest()
