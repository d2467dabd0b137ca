from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from ..schemas.enums import RouteSource

_RATE_LIMIT_HEADERS = (
    ("x-ratelimit-remaining", "rate_limit_remaining"),
    ("x-ratelimit-used", "rate_limit_used"),
)


@dataclass(frozen=True)
class TransportRequest:
    """Transport-ready request built from a card's execution hints.

    Only the fields relevant to ``route`` are populated:

    - cli: ``command`` tokens, ``args`` and ``json_fields``.
    - graphql: ``operation``, ``document`` and ``variables``.
    - rest: ``method``, ``path``, ``params`` (query) and ``body``.
    """

    capability_id: str
    route: RouteSource
    timeout_ms: int
    command: List[str] = field(default_factory=list)
    args: List[str] = field(default_factory=list)
    json_fields: List[str] = field(default_factory=list)
    operation: Optional[str] = None
    document: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    result_path: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class TransportResponse:
    data: Any
    status: Optional[int] = None
    pagination: Optional[Dict[str, Any]] = None
    cost: Optional[Dict[str, Any]] = None


@runtime_checkable
class TransportAdapter(Protocol):
    """Executes one transport request.

    Adapters raise on failure; the retry/fallback controller classifies the
    exception into an error code. Per-attempt timeouts are the adapter's job.
    """

    async def run(self, request: TransportRequest) -> TransportResponse: ...


def rate_limit_cost(headers: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    """Rate-limit accounting from GitHub response headers, when present."""
    cost: Dict[str, Any] = {}
    for header, key in _RATE_LIMIT_HEADERS:
        value = headers.get(header)
        if value is not None and value.isdigit():
            cost[key] = int(value)
    return cost or None
