"""HTTP client for the Influxion ingestion API.

This module provides:
- IngestClient: Async client for the session and skill ingest endpoints
- IngestError: Transport failure (non-2xx, timeout, connection error)
- IngestResponse: Parsed acknowledgement from the endpoint
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from influxion.core.config import InfluxionConfig

logger = logging.getLogger(__name__)

SESSIONS_INGEST_PATH = "/v1/openclaw/ingest/sessions"
SKILLS_INGEST_PATH = "/v1/openclaw/ingest/skills"


class IngestError(Exception):
    """A single ingest attempt failed.

    Every IngestError is retryable; the uploaders decide when to give up.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(IngestError):
    """API key rejected."""


@dataclass
class IngestResponse:
    """Acknowledgement returned by the ingest endpoints."""

    accepted: int = 0
    rejected: int = 0
    batch_id: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> IngestResponse:
        """Create from a response body (tolerates missing fields)."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            accepted=int(data.get("accepted") or 0),
            rejected=int(data.get("rejected") or 0),
            batch_id=data.get("batchId"),
            warnings=list(data.get("warnings") or []),
        )


class IngestClient:
    """Async HTTP client for the ingestion API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: Base URL of the API.
            api_key: Bearer token.
            timeout: Limit for one request attempt, in seconds.
        """
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_config(cls, config: InfluxionConfig) -> IngestClient:
        """Build a client from plugin configuration."""
        return cls(
            api_url=config.api_url,
            api_key=config.api_key,
            timeout=config.upload.timeout_ms / 1000,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> IngestClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Raise IngestError for non-2xx responses."""
        if response.is_success:
            return response
        text = response.text or "(no body)"
        if response.status_code == 401:
            raise AuthenticationError(f"HTTP 401: {text}", 401)
        raise IngestError(f"HTTP {response.status_code}: {text}", response.status_code)

    async def post_json(self, path: str, body: dict[str, Any]) -> IngestResponse:
        """POST a JSON body, bounded by the per-attempt timeout.

        Args:
            path: Endpoint path relative to the API URL.
            body: JSON-serializable request body.

        Returns:
            Parsed acknowledgement.

        Raises:
            IngestError: On non-2xx status, timeout or transport error.
        """
        try:
            response = await asyncio.wait_for(
                self._client.post(path, json=body),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise IngestError(f"Request timed out after {self._timeout:.0f}s") from e
        except httpx.TimeoutException as e:
            raise IngestError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise IngestError(f"Request failed: {e}") from e

        self._handle_response(response)
        try:
            return IngestResponse.from_dict(response.json())
        except (TypeError, ValueError):
            return IngestResponse()

    async def ingest_sessions(self, lines: list[dict[str, Any]]) -> IngestResponse:
        """Send transcript line envelopes."""
        return await self.post_json(SESSIONS_INGEST_PATH, {"lines": lines})

    async def ingest_skills(
        self,
        skills: list[dict[str, Any]],
        full_sync: bool = True,
    ) -> IngestResponse:
        """Send skill envelopes.

        With full_sync the endpoint treats the list as the complete
        manifest and marks anything absent from it as removed.
        """
        return await self.post_json(
            SKILLS_INGEST_PATH,
            {"fullSync": full_sync, "skills": skills},
        )
