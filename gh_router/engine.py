"""Capability engine facade.

The engine wires the pipeline together:

- ``execute``: registry lookup -> input check -> route selection ->
  retry/fallback controller -> normalized ``ResultEnvelope``.
- ``run_chain``: composite capabilities through the ``CompositeOrchestrator``,
  which re-enters ``execute`` once per sub-request.
- ``run_batch``: independent requests with bounded concurrency.

All collaborators arrive through ``EngineDeps``; ``build_engine`` is the
default wiring from ``Settings``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Union

import httpx

from .adapters.base import TransportAdapter
from .adapters.cli import CliAdapter, CliCommandRunner, SafeCliCommandRunner
from .adapters.graphql import GraphqlAdapter
from .adapters.rest import RestAdapter
from .composite.orchestrator import CompositeOrchestrator
from .core.config import RetryPolicy, Settings
from .execution.controller import DEFAULT_TIMEOUT_MS, RetryFallbackController
from .execution.normalizer import NormalizerMeta, normalize_error
from .registry.registry import DescriptorRegistry
from .registry.types import OperationCard
from .routing.cache import ResolutionCache
from .routing.preflight import AmbientContext, detect_cli_environment
from .routing.selector import RouteSelector
from .routing.suitability import is_present
from .schemas.enums import ErrorCode, ReasonCode, RouteSource
from .schemas.envelope import ChainResult, ChainStepResult, ResultEnvelope, ResultError
from .schemas.task import TaskRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``CapabilityEngine``.

    This object is typically constructed by application wiring code (see
    ``build_engine``) and passed into the engine. It holds:

    - the descriptor registry used to resolve task names
    - one adapter per transport the process can use
    - retry policy, optional resolution cache and concurrency bound
    - the HTTP client the engine created and must close, if any
    """

    registry: DescriptorRegistry
    adapters: Mapping[RouteSource, TransportAdapter]
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    cache: Optional[ResolutionCache] = None
    max_concurrency: int = 4
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    http_client: Optional[httpx.AsyncClient] = None


def _missing_inputs(card: OperationCard, input: Mapping[str, Any]) -> List[str]:
    return [name for name in card.required_inputs() if not is_present(input, name)]


def _step_entry(task: str, envelope: ResultEnvelope) -> ChainStepResult:
    if envelope.success:
        return ChainStepResult(task=task, ok=True, data=envelope.data)
    return ChainStepResult(task=task, ok=False, error=envelope.error)


def _route_tried(envelope: ResultEnvelope) -> List[RouteSource]:
    if envelope.meta.attempts and envelope.meta.route_used is not None:
        return [envelope.meta.route_used]
    return []


class CapabilityEngine:
    """Route and execute GitHub capabilities.

    Only ``run_chain`` raises (``CapabilityNotFoundError`` for an unknown
    capability); every other failure comes back inside an envelope.
    """

    def __init__(self, deps: EngineDeps) -> None:
        self._deps = deps
        self._selector = RouteSelector(deps.cache)
        self._controller = RetryFallbackController(
            deps.adapters,
            deps.retry,
            default_timeout_ms=deps.default_timeout_ms,
            sleep=deps.sleep,
        )
        self._orchestrator = CompositeOrchestrator(self.execute, max_concurrency=deps.max_concurrency)

    @property
    def registry(self) -> DescriptorRegistry:
        return self._deps.registry

    async def aclose(self) -> None:
        """Close adapters that own their clients, then the engine's own HTTP client."""
        for adapter in self._deps.adapters.values():
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()
        if self._deps.http_client is not None:
            await self._deps.http_client.aclose()

    async def __aenter__(self) -> "CapabilityEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def execute(self, request: TaskRequest, ambient: AmbientContext) -> ResultEnvelope:
        """
        Execute one non-composite capability.

        Args:
            request: Task name, input and per-request options.
            ambient: Environment snapshot for preflight and suitability rules.

        Returns:
            A ``ResultEnvelope``. Unknown or composite capabilities and missing
            required inputs yield ``VALIDATION`` errors with no attempts.
        """
        started = time.perf_counter()
        logger.debug("execute.start: task=%s input_keys=%s", request.task, sorted(request.input.keys()))

        card = self._deps.registry.get(request.task)
        if card is None:
            return self._rejected(request.task, f"Unknown capability '{request.task}'", {"task": request.task})
        if card.is_composite:
            return self._rejected(
                request.task,
                f"Capability '{request.task}' is composite; run it with run_chain",
                {"task": request.task},
            )

        missing = _missing_inputs(card, request.input)
        if missing:
            return self._rejected(
                request.task,
                f"Missing required input(s): {', '.join(missing)}",
                {"missing": missing},
            )

        plan = self._selector.select(card, request, ambient)
        if plan.is_empty:
            meta = NormalizerMeta(capability_id=card.capability_id, attempts=[])
            envelope = normalize_error(plan.terminal_error(), None, meta)
        else:
            envelope = await self._controller.run(card, request, plan)

        logger.info(
            "execute.complete: task=%s success=%s route=%s attempts=%s elapsed_ms=%.1f",
            request.task,
            envelope.success,
            envelope.meta.route_used.value if envelope.meta.route_used else None,
            len(envelope.meta.attempts),
            (time.perf_counter() - started) * 1000.0,
        )
        return envelope

    @staticmethod
    def _rejected(capability_id: str, message: str, details: dict) -> ResultEnvelope:
        logger.info("execute.rejected: task=%s reason=%s", capability_id, message)
        return normalize_error(
            ResultError(code=ErrorCode.validation, message=message, retryable=False, details=details),
            None,
            NormalizerMeta(capability_id=capability_id, reason=ReasonCode.capability_limit, attempts=[]),
        )

    async def run_chain(
        self,
        request: TaskRequest,
        ambient: AmbientContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChainResult:
        """
        Execute a composite capability step by step.

        A non-composite capability runs as a one-step chain.

        Raises:
            CapabilityNotFoundError: If ``request.task`` is not registered.
        """
        card = self._deps.registry.lookup(request.task)
        composite = card.composite
        if composite is None:
            envelope = await self.execute(request, ambient)
            return ChainResult.assemble([_step_entry(request.task, envelope)], routes_used=_route_tried(envelope))

        missing = _missing_inputs(card, request.input)
        if missing:
            error = ResultError(
                code=ErrorCode.validation,
                message=f"Missing required input(s): {', '.join(missing)}",
                retryable=False,
                details={"missing": missing},
            )
            return ChainResult.assemble(
                [ChainStepResult(task=step.capability, ok=False, error=error) for step in composite.steps]
            )

        logger.debug("run_chain.start: task=%s steps=%s", request.task, len(composite.steps))
        result = await self._orchestrator.run(card, request, ambient, cancel_event)
        logger.info(
            "run_chain.complete: task=%s status=%s succeeded=%s/%s",
            request.task,
            result.status.value,
            result.meta.succeeded,
            result.meta.total,
        )
        return result

    async def run(
        self,
        request: TaskRequest,
        ambient: AmbientContext,
    ) -> Union[ResultEnvelope, ChainResult]:
        """Dispatch to ``run_chain`` for composite capabilities and ``execute`` otherwise."""
        card = self._deps.registry.get(request.task)
        if card is not None and card.is_composite:
            return await self.run_chain(request, ambient)
        return await self.execute(request, ambient)

    async def run_batch(self, requests: Sequence[TaskRequest], ambient: AmbientContext) -> ChainResult:
        """Execute independent requests concurrently; entries keep request order."""
        semaphore = asyncio.Semaphore(max(1, self._deps.max_concurrency))

        async def _one(req: TaskRequest) -> ResultEnvelope:
            async with semaphore:
                return await self.execute(req, ambient)

        envelopes = await asyncio.gather(*(_one(req) for req in requests))
        routes: List[RouteSource] = []
        for envelope in envelopes:
            routes.extend(_route_tried(envelope))
        return ChainResult.assemble(
            [_step_entry(req.task, env) for req, env in zip(requests, envelopes)],
            routes_used=routes,
        )


def build_engine(
    settings: Optional[Settings] = None,
    registry: Optional[DescriptorRegistry] = None,
    *,
    cli_runner: Optional[CliCommandRunner] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CapabilityEngine:
    """
    Build an engine with the default CLI, GraphQL and REST adapters.

    Args:
        settings: Configuration; a fresh ``Settings()`` when omitted.
        registry: Descriptor registry; the built-in cards when omitted.
        cli_runner: Process runner for the CLI adapter.
        http_client: Shared ``httpx.AsyncClient`` for the HTTP adapters. When
            omitted the engine creates one and closes it in ``aclose``.
        sleep: Backoff sleep, injectable for tests.

    Returns:
        A ready ``CapabilityEngine``.
    """
    cfg = settings or Settings()
    runner = cli_runner or SafeCliCommandRunner(cfg.cli.max_output_bytes)
    github = cfg.github
    owned_client: Optional[httpx.AsyncClient] = None
    if http_client is None:
        http_client = owned_client = httpx.AsyncClient(follow_redirects=True)
    adapters: Mapping[RouteSource, TransportAdapter] = {
        RouteSource.cli: CliAdapter(runner, binary=cfg.cli.binary),
        RouteSource.graphql: GraphqlAdapter(github.token, url=github.graphql_url, client=http_client),
        RouteSource.rest: RestAdapter(github.token, base_url=github.api_url, client=http_client),
    }
    deps = EngineDeps(
        registry=registry or DescriptorRegistry.builtin(),
        adapters=adapters,
        retry=cfg.retry,
        cache=ResolutionCache() if cfg.enable_resolution_cache else None,
        max_concurrency=cfg.max_concurrency,
        default_timeout_ms=cfg.default_timeout_ms,
        sleep=sleep,
        http_client=owned_client,
    )
    return CapabilityEngine(deps)


async def detect_ambient(
    settings: Optional[Settings] = None,
    *,
    cli_runner: Optional[CliCommandRunner] = None,
    check_cli: bool = True,
) -> AmbientContext:
    """Build an ``AmbientContext`` from configuration, probing the CLI unless ``check_cli`` is false.

    With ``check_cli=False`` the CLI is assumed installed and authenticated,
    which skips two process spawns when the caller already knows.
    """
    cfg = settings or Settings()
    if not check_cli:
        return AmbientContext.from_settings(cfg, cli_installed=True, cli_authenticated=True)
    runner = cli_runner or SafeCliCommandRunner(cfg.cli.max_output_bytes)
    installed, authenticated = await detect_cli_environment(runner, cfg.cli.binary)
    return AmbientContext.from_settings(cfg, cli_installed=installed, cli_authenticated=authenticated)
