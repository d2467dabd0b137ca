"""Composite capability orchestration.

A composite card is a list of steps run in declared order. Each step maps its
inputs from constants or field paths, optionally repeats over a collection,
runs every sub-request through the single-capability pipeline with bounded
concurrency and folds the payloads with the step's merge strategy.

A failed step never aborts the chain by itself; later steps only stop when
their ``when_any`` guards no longer hold. Once the cancel event is set, steps
and sub-requests that have not started are recorded as skipped while the ones
already running finish and contribute their results.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..execution.classifier import classify_error
from ..registry.types import CompositeStep, OperationCard
from ..routing.preflight import AmbientContext
from ..schemas.enums import ErrorCode, RouteSource
from ..schemas.envelope import ChainResult, ChainStepResult, ResultEnvelope, ResultError
from ..schemas.task import TaskRequest
from .merge import empty_output, failed_indices, merge_outputs
from .paths import MISSING, guard_holds, resolve_path

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[TaskRequest, AmbientContext], Awaitable[ResultEnvelope]]


@dataclass(frozen=True)
class SubOutcome:
    ok: bool
    data: Any = None
    error: Optional[ResultError] = None
    route: Optional[RouteSource] = None
    skipped: bool = False


class CompositeOrchestrator:
    """Run composite cards step by step.

    Args:
        execute: Single-capability pipeline used for every sub-request.
        max_concurrency: Upper bound of sub-requests in flight for one step.
    """

    def __init__(self, execute: ExecuteFn, *, max_concurrency: int = 4) -> None:
        self._execute = execute
        self._max_concurrency = max(1, max_concurrency)

    async def run(
        self,
        card: OperationCard,
        request: TaskRequest,
        ambient: AmbientContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChainResult:
        if card.composite is None:
            raise ValueError(f"capability '{card.capability_id}' is not composite")

        results: List[ChainStepResult] = []
        routes: List[RouteSource] = []
        outcomes: Dict[str, bool] = {}
        payloads: Dict[str, Any] = {}

        for step in card.composite.steps:
            if cancel_event is not None and cancel_event.is_set():
                logger.debug("composite %s: step %s skipped (cancelled)", card.capability_id, step.id)
                results.append(ChainStepResult(task=step.capability, ok=False, skipped=True))
                outcomes[step.id] = False
                continue

            if step.when_any and not any(guard_holds(g, outcomes, payloads) for g in step.when_any):
                logger.debug("composite %s: step %s skipped (guard)", card.capability_id, step.id)
                results.append(ChainStepResult(task=step.capability, ok=False, skipped=True))
                outcomes[step.id] = False
                continue

            entry, payload, step_routes = await self._run_step(step, request, ambient, payloads, cancel_event)
            results.append(entry)
            routes.extend(step_routes)
            outcomes[step.id] = entry.ok
            payloads[step.id] = payload
            logger.debug("composite %s: step %s ok=%s", card.capability_id, step.id, entry.ok)

        return ChainResult.assemble(results, routes_used=routes)

    async def _run_step(
        self,
        step: CompositeStep,
        request: TaskRequest,
        ambient: AmbientContext,
        payloads: Dict[str, Any],
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[ChainStepResult, Any, List[RouteSource]]:
        if step.foreach is not None:
            collection = resolve_path(step.foreach, input=request.input, steps=payloads)
            if collection is MISSING or not isinstance(collection, list):
                error = ResultError(
                    code=ErrorCode.validation,
                    message=f"Step '{step.id}': '{step.foreach}' does not resolve to a list",
                    retryable=False,
                )
                return ChainStepResult(task=step.capability, ok=False, error=error), None, []
            items: List[Any] = list(collection)
        else:
            items = [MISSING]

        if not items:
            empty = empty_output(step.merge)
            return ChainStepResult(task=step.capability, ok=True, data=empty), empty, []

        prepared = [self._prepare(step, request, payloads, item) for item in items]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _one(sub: Union[TaskRequest, ResultError]) -> SubOutcome:
            if isinstance(sub, ResultError):
                return SubOutcome(ok=False, error=sub)
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return SubOutcome(ok=False, skipped=True)
                try:
                    envelope = await self._execute(sub, ambient)
                except Exception as exc:
                    return SubOutcome(ok=False, error=classify_error(exc))
            tried = envelope.meta.route_used if envelope.meta.attempts else None
            if envelope.success:
                return SubOutcome(ok=True, data=envelope.data, route=tried)
            return SubOutcome(ok=False, error=envelope.error, route=tried)

        sub_outcomes = await asyncio.gather(*(_one(sub) for sub in prepared))
        step_routes = [o.route for o in sub_outcomes if o.route is not None]
        payload = merge_outputs(step.merge, [o.data for o in sub_outcomes if o.ok])

        if all(o.ok for o in sub_outcomes):
            return ChainStepResult(task=step.capability, ok=True, data=payload), payload, step_routes

        if all(o.skipped for o in sub_outcomes):
            return ChainStepResult(task=step.capability, ok=False, skipped=True), None, step_routes

        return (
            ChainStepResult(task=step.capability, ok=False, error=self._step_error(step, sub_outcomes)),
            payload,
            step_routes,
        )

    @staticmethod
    def _step_error(step: CompositeStep, sub_outcomes: List[SubOutcome]) -> ResultError:
        flags = [o.ok for o in sub_outcomes]
        failures = [o.error for o in sub_outcomes if o.error is not None]
        details: Dict[str, Any] = {"failed_indices": failed_indices(flags)}
        skipped = [i for i, o in enumerate(sub_outcomes) if o.skipped]
        if skipped:
            details["skipped_indices"] = skipped
        if failures:
            last = failures[-1]
            return ResultError(
                code=last.code,
                message=last.message,
                retryable=last.retryable,
                details={**(last.details or {}), **details},
            )
        return ResultError(
            code=ErrorCode.unknown,
            message=f"Step '{step.id}' was cancelled before all sub-requests started",
            retryable=False,
            details=details,
        )

    @staticmethod
    def _prepare(
        step: CompositeStep,
        request: TaskRequest,
        payloads: Dict[str, Any],
        item: Any,
    ) -> Union[TaskRequest, ResultError]:
        sub_input: Dict[str, Any] = {}
        for target, binding in step.input.items():
            if binding.source is None:
                sub_input[target] = binding.value
                continue
            value = resolve_path(binding.source, input=request.input, steps=payloads, item=item)
            if value is MISSING:
                return ResultError(
                    code=ErrorCode.validation,
                    message=f"Step '{step.id}': input '{target}' source '{binding.source}' did not resolve",
                    retryable=False,
                )
            sub_input[target] = value
        return TaskRequest(task=step.capability, input=sub_input, options=request.options)
