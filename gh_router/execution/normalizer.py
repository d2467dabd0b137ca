"""Result normalization.

Every transport outcome, success or failure, leaves the engine as a
``ResultEnvelope``. The normalizer is the only place envelopes are built so
the wire shape stays identical across transports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..schemas.enums import ReasonCode, RouteSource
from ..schemas.envelope import AttemptRecord, ResultEnvelope, ResultError, ResultMeta


@dataclass(frozen=True)
class NormalizerMeta:
    capability_id: str
    reason: Optional[ReasonCode] = None
    attempts: Optional[List[AttemptRecord]] = None
    pagination: Optional[Dict[str, Any]] = None
    timings: Optional[Dict[str, float]] = None
    cost: Optional[Dict[str, Any]] = field(default=None)


def _meta(route: Optional[RouteSource], meta: NormalizerMeta) -> ResultMeta:
    return ResultMeta(
        capability_id=meta.capability_id,
        route_used=route,
        reason=meta.reason,
        attempts=list(meta.attempts or []),
        pagination=meta.pagination,
        timings=meta.timings,
        cost=meta.cost,
    )


def normalize_result(data: Any, route: Optional[RouteSource], meta: NormalizerMeta) -> ResultEnvelope:
    """Wrap a successful payload; ``data`` is carried through untouched."""
    return ResultEnvelope(success=True, data=data, meta=_meta(route, meta))


def normalize_error(error: ResultError, route: Optional[RouteSource], meta: NormalizerMeta) -> ResultEnvelope:
    """Wrap a failure. ``route`` is ``None`` when no transport was tried."""
    return ResultEnvelope(success=False, error=error, meta=_meta(route, meta))
