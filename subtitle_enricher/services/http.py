"""Shared async HTTP plumbing for the service clients.

WHY: Every remote helper needs the same lifecycle (open a pooled client,
close it on exit) and the same error mapping (non-2xx and transport
failures become TransientHelperError so the orchestrator can treat them
as retryable per leaf).

HOW: HTTPService wraps httpx.AsyncClient. Subclasses call _request()
with the helper name used in diagnostics.

RULES:
- Use as: async with Client(...) as client: ...
- transport is injectable so tests can pass httpx.MockTransport
- Non-2xx responses raise ServiceAPIError; httpx.HTTPError raises
  TransientHelperError
"""

from __future__ import annotations

from typing import Any

import httpx

from subtitle_enricher.config import HTTP_TIMEOUT_S
from subtitle_enricher.core.errors import ServiceAPIError, TransientHelperError


class HTTPService:
    """Base class for httpx-backed helpers."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = HTTP_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HTTPService:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 10.0)),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                f"{type(self).__name__} must be used as an async context manager: "
                f"async with {type(self).__name__}(...) as client: ..."
            )
        return self._client

    async def _request(
        self,
        helper: str,
        method: str,
        url: str,
        allow: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request; statuses listed in ``allow`` are returned, not raised."""
        client = self._ensure_client()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransientHelperError(helper, f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code >= 400 and resp.status_code not in allow:
            raise ServiceAPIError(helper, resp.status_code, resp.text[:200])
        return resp

    @staticmethod
    def _json(helper: str, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientHelperError(helper, f"invalid JSON response: {exc}") from exc
