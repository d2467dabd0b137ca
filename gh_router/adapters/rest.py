from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .base import TransportRequest, TransportResponse, rate_limit_cost

DEFAULT_API_URL = "https://api.github.com"


class RestAdapter:
    """
    Execute ``rest`` transport requests against the GitHub REST API.

    - Uses httpx.AsyncClient for HTTP; non-2xx responses raise ``httpx.HTTPStatusError``
    - ``Link: rel="next"`` becomes pagination metadata
    - Empty bodies (204) yield ``None`` data
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: str = DEFAULT_API_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._owns_http = client is None
        self._http = client or httpx.AsyncClient(timeout=10.0, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "gh-router",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def run(self, request: TransportRequest) -> TransportResponse:
        method = (request.method or "GET").upper()
        url = f"{self._base_url}/{(request.path or '').lstrip('/')}"
        self._logger.debug("RestAdapter.run: %s %s params=%s", method, url, list(request.params.keys()))
        r = await self._http.request(
            method,
            url,
            headers=self._headers(),
            params=request.params or None,
            json=request.body,
            timeout=request.timeout_ms / 1000.0,
        )
        r.raise_for_status()

        data: Any = r.json() if r.content else None
        pagination: Optional[Dict[str, Any]] = None
        next_link = r.links.get("next")
        if next_link:
            pagination = {"has_next_page": True, "next_url": next_link.get("url")}
        return TransportResponse(
            data=data,
            status=r.status_code,
            pagination=pagination,
            cost=rate_limit_cost(r.headers),
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_http:
            await self._http.aclose()
