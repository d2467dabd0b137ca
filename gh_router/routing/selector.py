"""Route selection.

Turns an operation card, a task request and the ambient context into an
ordered, non-empty list of candidate transports, or into a terminal error
when no transport is viable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..registry.types import OperationCard, RoutingBlock
from ..schemas.enums import ErrorCode, ReasonCode, RouteSource
from ..schemas.envelope import ResultError
from ..schemas.task import TaskRequest
from .cache import ResolutionCache, build_cache_key
from .preflight import AmbientContext, PreflightResult, check_preflight
from .suitability import evaluate_suitability, input_fields_referenced, is_present

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteCandidate:
    route: RouteSource
    reason: ReasonCode


@dataclass(frozen=True)
class RoutePlan:
    """Outcome of route selection.

    Exactly one of ``candidates`` (non-empty) and ``error`` is meaningful:
    a plan with no candidates always carries a terminal error.
    """

    capability_id: str
    candidates: Tuple[RouteCandidate, ...] = ()
    error: Optional[ResultError] = None
    denied: Tuple[PreflightResult, ...] = field(default=(), compare=False)

    @property
    def routes(self) -> List[RouteSource]:
        return [c.route for c in self.candidates]

    @property
    def is_empty(self) -> bool:
        return not self.candidates

    def terminal_error(self) -> ResultError:
        """Error to report when the plan has no candidates."""
        if self.error is not None:
            return self.error
        return ResultError(
            code=ErrorCode.adapter_unsupported,
            message="No suitable transport is available",
            retryable=False,
        )


class RouteSelector:
    """Select candidate transports for a capability.

    Args:
        cache: Optional resolution cache; when given, plans are memoized per
            capability, ambient fingerprint and the presence of the input
            fields that suitability rules look at.
    """

    def __init__(self, cache: Optional[ResolutionCache] = None) -> None:
        self._cache = cache

    def select(self, card: OperationCard, request: TaskRequest, ambient: AmbientContext) -> RoutePlan:
        routing = card.routing
        if routing is None:
            return self._no_route(card, (), "Capability declares no routing")

        if self._cache is None:
            return self._resolve(card, routing, request, ambient)

        fields = input_fields_referenced(routing.suitability)
        presence = tuple(is_present(request.input, f) for f in fields)
        key = build_cache_key(card.capability_id, ambient.fingerprint(), presence)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("route plan cache hit: capability=%s routes=%s", card.capability_id, cached.routes)
            return cached
        return self._cache.put_if_absent(key, self._resolve(card, routing, request, ambient))

    def _resolve(
        self, card: OperationCard, routing: RoutingBlock, request: TaskRequest, ambient: AmbientContext
    ) -> RoutePlan:

        candidates: List[RouteCandidate] = []
        denied: List[PreflightResult] = []
        for route in routing.candidates():
            suitable, explicit_reason = evaluate_suitability(routing.suitability, route, request.input, ambient)
            if not suitable:
                logger.debug("route %s unsuitable for %s", route.value, card.capability_id)
                continue

            preflight = check_preflight(route, ambient)
            if not preflight.allowed:
                logger.debug(
                    "route %s denied by preflight for %s: %s", route.value, card.capability_id, preflight.code
                )
                denied.append(preflight)
                continue

            if explicit_reason is not None:
                reason = explicit_reason
            elif not candidates:
                reason = ReasonCode.card_preferred if route == routing.preferred else ReasonCode.coverage_gap
            else:
                reason = ReasonCode.card_fallback
            candidates.append(RouteCandidate(route=route, reason=reason))

        if not candidates:
            return self._no_route(card, tuple(denied), "No suitable transport is available")

        logger.debug(
            "route plan: capability=%s candidates=%s",
            card.capability_id,
            [(c.route.value, c.reason.value) for c in candidates],
        )
        return RoutePlan(capability_id=card.capability_id, candidates=tuple(candidates), denied=tuple(denied))

    @staticmethod
    def _no_route(card: OperationCard, denied: Tuple[PreflightResult, ...], message: str) -> RoutePlan:
        if denied:
            first = denied[0]
            error = ResultError(
                code=first.code or ErrorCode.adapter_unsupported,
                message=first.message or message,
                retryable=False,
                details=dict(first.details),
            )
        else:
            error = ResultError(code=ErrorCode.adapter_unsupported, message=message, retryable=False)
        logger.debug("no route for %s: %s", card.capability_id, error.code)
        return RoutePlan(capability_id=card.capability_id, error=error, denied=denied)
