"""Retry/fallback controller.

Walks a route plan's candidates in order, retrying retryable failures on the
same transport within the per-transport budget and advancing to the next
candidate otherwise. Adapter exceptions never escape: every outcome is a
``ResultEnvelope`` whose ``meta.attempts`` lists each try in order.

States: ``Selecting -> Attempting -> {Success, Retrying, Advancing,
ExhaustedFailure}``; ``Retrying`` loops back to ``Attempting`` on the same
transport and ``Advancing`` to ``Attempting`` on the next one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from ..adapters.base import TransportAdapter, TransportResponse
from ..core.config import RetryPolicy
from ..registry.types import OperationCard
from ..routing.selector import RouteCandidate, RoutePlan
from ..schemas.enums import AttemptStatus, ErrorCode, RouteSource
from ..schemas.envelope import AttemptRecord, ResultEnvelope, ResultError
from ..schemas.task import TaskRequest
from .classifier import classify_error
from .normalizer import NormalizerMeta, normalize_error, normalize_result
from .requests import build_transport_request

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_TIMEOUT_MS = 10_000


class ControllerState(str, Enum):
    selecting = "selecting"
    attempting = "attempting"
    success = "success"
    retrying = "retrying"
    advancing = "advancing"
    exhausted_failure = "exhausted_failure"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


def check_required_outputs(card: OperationCard, data: Any) -> List[str]:
    """Return the output keys the card requires that ``data`` lacks."""
    required = card.required_outputs()
    if not required:
        return []
    if not isinstance(data, dict):
        return list(required)
    return [key for key in required if key not in data]


class RetryFallbackController:
    """Execute a route plan against the configured adapters.

    Args:
        adapters: Transport -> adapter. Transports without an adapter are
            recorded as skipped attempts.
        retry: Default per-transport budget and linear backoff.
        default_timeout_ms: Per-attempt timeout when neither the request nor the card sets one.
        sleep: Awaitable used between retries, injectable for tests.
    """

    def __init__(
        self,
        adapters: Mapping[RouteSource, TransportAdapter],
        retry: Optional[RetryPolicy] = None,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._adapters = dict(adapters)
        self._retry = retry or RetryPolicy()
        self._default_timeout_ms = default_timeout_ms
        self._sleep = sleep

    def _transition(self, capability_id: str, state: ControllerState, route: Optional[RouteSource] = None) -> None:
        logger.debug(
            "controller: capability=%s state=%s route=%s",
            capability_id,
            state.value,
            route.value if route else None,
        )

    def _budget(self, request: TaskRequest) -> int:
        budget = request.options.max_attempts_per_route or self._retry.max_attempts_per_route
        return max(1, budget)

    async def run(self, card: OperationCard, request: TaskRequest, plan: RoutePlan) -> ResultEnvelope:
        capability_id = card.capability_id
        started = time.perf_counter()
        self._transition(capability_id, ControllerState.selecting)

        if plan.is_empty:
            meta = NormalizerMeta(capability_id=capability_id, attempts=[])
            return normalize_error(plan.terminal_error(), None, meta)

        attempts: List[AttemptRecord] = []
        last_error: ResultError = plan.terminal_error()
        last_candidate: RouteCandidate = plan.candidates[0]
        budget = self._budget(request)

        for candidate in plan.candidates:
            route = candidate.route
            last_candidate = candidate
            self._transition(capability_id, ControllerState.attempting, route)

            adapter = self._adapters.get(route)
            if adapter is None:
                last_error = ResultError(
                    code=ErrorCode.adapter_unsupported,
                    message=f"No adapter configured for transport '{route.value}'",
                    retryable=False,
                    details={"transport": route.value},
                )
                attempts.append(
                    AttemptRecord(route=route, status=AttemptStatus.skipped, error_code=ErrorCode.adapter_unsupported)
                )
                self._transition(capability_id, ControllerState.advancing, route)
                continue

            for attempt_number in range(1, budget + 1):
                attempt_started = time.perf_counter()
                try:
                    transport_request = build_transport_request(
                        card, route, request, default_timeout_ms=self._default_timeout_ms
                    )
                    response = await adapter.run(transport_request)
                except Exception as exc:
                    error = classify_error(exc)
                    attempts.append(
                        AttemptRecord(
                            route=route,
                            status=AttemptStatus.error,
                            error_code=error.code,
                            duration_ms=_elapsed_ms(attempt_started),
                        )
                    )
                    last_error = error
                    logger.debug(
                        "attempt %s/%s on %s failed for %s: %s (%s)",
                        attempt_number,
                        budget,
                        route.value,
                        capability_id,
                        error.code.value,
                        error.message,
                    )
                    if error.retryable and attempt_number < budget:
                        self._transition(capability_id, ControllerState.retrying, route)
                        await self._sleep(self._retry.delay_seconds(attempt_number))
                        continue
                    self._transition(capability_id, ControllerState.advancing, route)
                    break

                missing = check_required_outputs(card, response.data)
                if missing:
                    last_error = ResultError(
                        code=ErrorCode.server,
                        message="Output schema mismatch",
                        retryable=False,
                        details={"missing": missing},
                    )
                    attempts.append(
                        AttemptRecord(
                            route=route,
                            status=AttemptStatus.error,
                            error_code=ErrorCode.server,
                            duration_ms=_elapsed_ms(attempt_started),
                        )
                    )
                    self._transition(capability_id, ControllerState.advancing, route)
                    break

                attempts.append(
                    AttemptRecord(
                        route=route,
                        status=AttemptStatus.success,
                        duration_ms=_elapsed_ms(attempt_started),
                    )
                )
                self._transition(capability_id, ControllerState.success, route)
                return self._success(capability_id, candidate, response, attempts, started)

        self._transition(capability_id, ControllerState.exhausted_failure)
        return normalize_error(
            last_error,
            last_candidate.route,
            NormalizerMeta(
                capability_id=capability_id,
                reason=last_candidate.reason,
                attempts=attempts,
                timings={"total_ms": _elapsed_ms(started)},
            ),
        )

    @staticmethod
    def _success(
        capability_id: str,
        candidate: RouteCandidate,
        response: TransportResponse,
        attempts: List[AttemptRecord],
        started: float,
    ) -> ResultEnvelope:
        timings: Dict[str, float] = {"total_ms": _elapsed_ms(started)}
        return normalize_result(
            response.data,
            candidate.route,
            NormalizerMeta(
                capability_id=capability_id,
                reason=candidate.reason,
                attempts=attempts,
                pagination=response.pagination,
                timings=timings,
                cost=response.cost,
            ),
        )
