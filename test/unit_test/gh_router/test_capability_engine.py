from __future__ import annotations

import asyncio

import httpx
import pytest

import gh_router.engine
from gh_router.core.config import RetryPolicy, Settings
from gh_router.engine import CapabilityEngine, EngineDeps, build_engine, detect_ambient
from gh_router.errors import CapabilityNotFoundError, TransportFailure
from gh_router.registry import DescriptorRegistry
from gh_router.routing.cache import ResolutionCache
from gh_router.routing.preflight import AmbientContext
from gh_router.schemas.enums import ChainStatus, ErrorCode, ReasonCode, RouteSource
from gh_router.schemas.task import TaskRequest

VIEW_INPUT = {"owner": "octo", "name": "hello", "issue_number": 7}


@pytest.fixture
def engine_factory(fake_adapter_cls, recording_sleep):
    def _make(adapters, **kwargs) -> CapabilityEngine:
        deps = EngineDeps(
            registry=DescriptorRegistry.builtin(),
            adapters=adapters,
            retry=RetryPolicy(max_attempts_per_route=2, backoff_ms=50),
            sleep=recording_sleep,
            **kwargs,
        )
        return CapabilityEngine(deps)

    return _make


class TestExecute:
    @pytest.mark.asyncio
    async def test_preferred_graphql_success(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        graphql = fake_adapter_cls({"number": 7, "title": "Bug"})
        engine = engine_factory({RouteSource.graphql: graphql, RouteSource.cli: fake_adapter_cls()})

        envelope = await engine.execute(TaskRequest(task="issue.view", input=VIEW_INPUT), full_ambient)

        assert envelope.success is True
        assert envelope.meta.route_used == RouteSource.graphql
        assert envelope.meta.reason == ReasonCode.card_preferred
        assert graphql.requests[0].variables == {"owner": "octo", "name": "hello", "issueNumber": 7}

    @pytest.mark.asyncio
    async def test_falls_back_to_cli_without_token(self, engine_factory, fake_adapter_cls) -> None:
        cli = fake_adapter_cls({"number": 7, "title": "Bug"})
        engine = engine_factory({RouteSource.graphql: fake_adapter_cls(), RouteSource.cli: cli})
        ambient = AmbientContext(cli_installed=True, cli_authenticated=True)

        envelope = await engine.execute(TaskRequest(task="issue.view", input=VIEW_INPUT), ambient)

        assert envelope.meta.route_used == RouteSource.cli
        assert envelope.meta.reason == ReasonCode.coverage_gap
        assert cli.requests[0].args == ["7", "--repo", "octo/hello"]

    @pytest.mark.asyncio
    async def test_unknown_capability_is_validation(self, engine_factory) -> None:
        envelope = await engine_factory({}).execute(TaskRequest(task="issue.nope"), AmbientContext())
        assert envelope.error is not None
        assert envelope.error.code == ErrorCode.validation
        assert envelope.meta.reason == ReasonCode.capability_limit
        assert envelope.meta.attempts == []

    @pytest.mark.asyncio
    async def test_composite_through_execute_is_validation(self, engine_factory, full_ambient) -> None:
        envelope = await engine_factory({}).execute(TaskRequest(task="issue.triage"), full_ambient)
        assert envelope.error is not None
        assert envelope.error.code == ErrorCode.validation

    @pytest.mark.asyncio
    async def test_missing_required_inputs(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        cli = fake_adapter_cls()
        engine = engine_factory({RouteSource.cli: cli})

        envelope = await engine.execute(
            TaskRequest(task="issue.view", input={"owner": "octo", "name": ""}), full_ambient
        )

        assert envelope.error is not None
        assert envelope.error.code == ErrorCode.validation
        assert envelope.error.details == {"missing": ["name", "issue_number"]}
        assert cli.calls == 0

    @pytest.mark.asyncio
    async def test_no_viable_route_returns_preflight_error(self, engine_factory, bare_ambient) -> None:
        request = TaskRequest(task="issue.comments.list", input=VIEW_INPUT)
        envelope = await engine_factory({}).execute(request, bare_ambient)
        assert envelope.error is not None
        assert envelope.error.code == ErrorCode.auth
        assert envelope.meta.attempts == []
        assert envelope.meta.route_used is None

    @pytest.mark.asyncio
    async def test_cached_plans_are_reused(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        cache = ResolutionCache()
        engine = engine_factory({RouteSource.cli: fake_adapter_cls({"name": "hello"})}, cache=cache)
        request = TaskRequest(task="repo.view", input={"owner": "octo", "name": "hello"})

        await engine.execute(request, full_ambient)
        await engine.execute(request, full_ambient)

        assert cache.hits == 1


class TestRunChain:
    @pytest.mark.asyncio
    async def test_unknown_capability_raises(self, engine_factory, full_ambient) -> None:
        with pytest.raises(CapabilityNotFoundError):
            await engine_factory({}).run_chain(TaskRequest(task="issue.nope"), full_ambient)

    @pytest.mark.asyncio
    async def test_single_capability_runs_as_one_step(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        engine = engine_factory({RouteSource.cli: fake_adapter_cls({"name": "hello"})})
        chain = await engine.run_chain(
            TaskRequest(task="repo.view", input={"owner": "octo", "name": "hello"}), full_ambient
        )
        assert chain.status == ChainStatus.success
        assert chain.meta.route_used == RouteSource.cli
        assert chain.results[0].data == {"name": "hello"}

    @pytest.mark.asyncio
    async def test_composite_missing_inputs_fail_every_step(self, engine_factory, full_ambient) -> None:
        chain = await engine_factory({}).run_chain(
            TaskRequest(task="issue.triage", input={"owner": "octo"}), full_ambient
        )
        assert chain.status == ChainStatus.failed
        assert len(chain.results) == 3
        assert all(r.error is not None and r.error.code == ErrorCode.validation for r in chain.results)

    @pytest.mark.asyncio
    async def test_run_dispatches_by_card_kind(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        engine = engine_factory({RouteSource.cli: fake_adapter_cls({"output": "ok"})})
        chain = await engine.run(
            TaskRequest(
                task="issue.comments.bulk_create",
                input={**VIEW_INPUT, "comments": ["one", "two"]},
            ),
            full_ambient,
        )
        assert chain.status == ChainStatus.success  # type: ignore[union-attr]
        envelope = await engine.run(TaskRequest(task="repo.view", input={"owner": "o", "name": "r"}), full_ambient)
        assert envelope.success is False  # type: ignore[union-attr]


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_batch_keeps_request_order(self, engine_factory, fake_adapter_cls, full_ambient) -> None:
        engine = engine_factory(
            {
                RouteSource.cli: fake_adapter_cls({"name": "hello"}),
                RouteSource.graphql: fake_adapter_cls(TransportFailure(ErrorCode.auth, "bad credentials")),
                RouteSource.rest: fake_adapter_cls(TransportFailure(ErrorCode.auth, "bad credentials")),
            }
        )
        chain = await engine.run_batch(
            [
                TaskRequest(task="repo.view", input={"owner": "octo", "name": "hello"}),
                TaskRequest(task="issue.comments.list", input=VIEW_INPUT),
            ],
            full_ambient,
        )
        assert chain.status == ChainStatus.partial
        assert [r.task for r in chain.results] == ["repo.view", "issue.comments.list"]
        assert chain.results[1].error is not None
        assert chain.results[1].error.code == ErrorCode.auth

    @pytest.mark.asyncio
    async def test_empty_batch_is_failed(self, engine_factory, full_ambient) -> None:
        chain = await engine_factory({}).run_batch([], full_ambient)
        assert chain.status == ChainStatus.failed
        assert chain.meta.total == 0


class TestWiring:
    @pytest.mark.asyncio
    async def test_build_engine_registers_every_transport(self, fake_cli_runner) -> None:
        async with build_engine(Settings(github_token="ghp_test"), cli_runner=fake_cli_runner) as engine:
            assert "issue.view" in engine.registry
            assert set(engine._deps.adapters) == {RouteSource.cli, RouteSource.graphql, RouteSource.rest}
            assert engine._deps.cache is not None

    @pytest.mark.asyncio
    async def test_owned_http_client_is_shared_and_closed(self, fake_cli_runner) -> None:
        engine = build_engine(Settings(github_token="ghp_test"), cli_runner=fake_cli_runner)
        client = engine._deps.http_client
        assert isinstance(client, httpx.AsyncClient)
        assert engine._deps.adapters[RouteSource.graphql]._http is client
        assert engine._deps.adapters[RouteSource.rest]._http is client

        await engine.aclose()

        assert client.is_closed

    @pytest.mark.asyncio
    async def test_caller_http_client_stays_open(self, fake_cli_runner) -> None:
        client = httpx.AsyncClient()
        async with build_engine(Settings(github_token="ghp_test"), cli_runner=fake_cli_runner, http_client=client):
            pass

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_detect_ambient_checks_cli(self, fake_cli_runner) -> None:
        fake_cli_runner.set(["--version"], stdout="gh version 2.60.0")
        fake_cli_runner.set(["auth", "status"], exit_code=1, stderr="not logged in")

        ambient = await detect_ambient(Settings(github_token="ghp_test"), cli_runner=fake_cli_runner)

        assert ambient.has_token is True
        assert ambient.cli_installed is True
        assert ambient.cli_authenticated is False

    @pytest.mark.asyncio
    async def test_detect_ambient_without_cli_check(self) -> None:
        ambient = await detect_ambient(Settings(github_token=None), check_cli=False)
        assert ambient.cli_installed and ambient.cli_authenticated
        assert ambient.has_token is False


@pytest.mark.asyncio
async def test_concurrent_executions_share_engine(engine_factory, fake_adapter_cls, full_ambient) -> None:
    engine = engine_factory({RouteSource.cli: fake_adapter_cls({"name": "hello"})}, cache=ResolutionCache())
    request = TaskRequest(task="repo.view", input={"owner": "octo", "name": "hello"})
    envelopes = await asyncio.gather(*(engine.execute(request, full_ambient) for _ in range(5)))
    assert all(e.success for e in envelopes)


def test_module_docstring_is_kept() -> None:
    assert gh_router.engine.__doc__ is not None
    assert gh_router.engine.__doc__.startswith("Capability engine facade.")
