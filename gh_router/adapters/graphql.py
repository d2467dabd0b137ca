from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import GraphqlResponseError
from ..schemas.enums import ErrorCode
from .base import TransportRequest, TransportResponse, rate_limit_cost

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"

# GitHub GraphQL error ``type`` -> error code
_ERROR_TYPES: Dict[str, ErrorCode] = {
    "NOT_FOUND": ErrorCode.validation,
    "FORBIDDEN": ErrorCode.auth,
    "UNAUTHORIZED": ErrorCode.auth,
    "RATE_LIMITED": ErrorCode.rate_limit,
    "INTERNAL": ErrorCode.server,
}


def extract_path(data: Any, path: Optional[str]) -> Any:
    """Walk a dotted ``path`` through nested dicts; ``None`` when a segment is missing."""
    if not path:
        return data
    current = data
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


class GraphqlAdapter:
    """
    Execute ``graphql`` transport requests against the GitHub GraphQL API.

    - Uses httpx.AsyncClient for HTTP
    - POSTs ``{query, variables, operationName}`` with a bearer token
    - Unwraps ``result_path``; a connection's ``nodes`` become the payload and
      its ``pageInfo`` becomes pagination metadata
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        url: str = DEFAULT_GRAPHQL_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._token = token
        self._url = url
        self._owns_http = client is None
        self._http = client or httpx.AsyncClient(timeout=10.0, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "gh-router",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def run(self, request: TransportRequest) -> TransportResponse:
        payload = {
            "query": request.document,
            "variables": request.variables,
            "operationName": request.operation,
        }
        self._logger.debug(
            "GraphqlAdapter.run: POST %s operation=%s variables_keys=%s",
            self._url,
            request.operation,
            list(request.variables.keys()),
        )
        r = await self._http.post(
            self._url,
            headers=self._headers(),
            json=payload,
            timeout=request.timeout_ms / 1000.0,
        )
        r.raise_for_status()
        body = r.json()

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            raise self._to_error(errors)
        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            raise GraphqlResponseError(["GraphQL response carried no data"], code=ErrorCode.server)

        result = extract_path(data, request.result_path)
        pagination: Optional[Dict[str, Any]] = None
        if isinstance(result, dict) and "pageInfo" in result:
            page_info = result.get("pageInfo") or {}
            pagination = {
                "has_next_page": bool(page_info.get("hasNextPage", False)),
                "end_cursor": page_info.get("endCursor"),
            }
            if "nodes" in result:
                result = result.get("nodes") or []
            else:
                result = {k: v for k, v in result.items() if k != "pageInfo"}

        return TransportResponse(
            data=result,
            status=r.status_code,
            pagination=pagination,
            cost=rate_limit_cost(r.headers),
        )

    @staticmethod
    def _to_error(errors: List[Any]) -> GraphqlResponseError:
        messages: List[str] = []
        code: Optional[ErrorCode] = None
        for err in errors:
            if isinstance(err, dict):
                messages.append(str(err.get("message", "")))
                if code is None:
                    code = _ERROR_TYPES.get(str(err.get("type", "")).upper())
            else:
                messages.append(str(err))
        return GraphqlResponseError([m for m in messages if m], code=code)

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_http:
            await self._http.aclose()
