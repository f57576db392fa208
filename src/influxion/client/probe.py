"""Environment capability probes.

This module provides:
- CapabilityProbe: Protocol for binary/env/platform lookups
- SystemProbe: Real probe backed by PATH, os.environ and sys.platform
- StaticProbe: Deterministic probe for tests

The availability evaluator only ever talks to a probe, never to the
process environment directly.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Mapping
from typing import Protocol


class CapabilityProbe(Protocol):
    """Lookups the availability evaluator needs from the environment."""

    def has_binary(self, name: str) -> bool:
        """Whether an executable named `name` is on the search path."""
        ...

    def getenv(self, name: str) -> str | None:
        """Value of an environment variable, or None."""
        ...

    @property
    def platform(self) -> str:
        """Platform identifier ("linux", "darwin", "win32", ...)."""
        ...


class SystemProbe:
    """Probe backed by the real process environment.

    Binary lookup is best-effort: any error while checking a directory is
    treated as "not found" there.
    """

    def has_binary(self, name: str) -> bool:
        search_path = os.environ.get("PATH", "")
        for directory in search_path.split(os.pathsep):
            if not directory:
                continue
            candidate = os.path.join(directory, name)
            try:
                if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                    return True
            except (OSError, ValueError):
                continue
        return False

    def getenv(self, name: str) -> str | None:
        return os.environ.get(name)

    @property
    def platform(self) -> str:
        return sys.platform


class StaticProbe:
    """Fully deterministic probe."""

    def __init__(
        self,
        binaries: Iterable[str] = (),
        env: Mapping[str, str] | None = None,
        platform: str = "linux",
    ) -> None:
        self._binaries = set(binaries)
        self._env = dict(env or {})
        self._platform = platform

    def has_binary(self, name: str) -> bool:
        return name in self._binaries

    def getenv(self, name: str) -> str | None:
        return self._env.get(name)

    @property
    def platform(self) -> str:
        return self._platform
