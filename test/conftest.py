from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import httpx
import pytest
from dotenv import load_dotenv

from gh_router.adapters.base import TransportRequest, TransportResponse
from gh_router.adapters.cli import CliRunResult
from gh_router.routing.preflight import AmbientContext

# Load dotenv files early so Settings() in tests sees test/.env values
TEST_ROOT = Path(__file__).resolve().parent
load_dotenv(TEST_ROOT / ".env", override=False)

Scripted = Union[TransportResponse, BaseException, Any]


class FakeAdapter:
    """Transport adapter returning scripted outcomes in order.

    Each script entry is a ``TransportResponse``, an exception to raise, or a
    plain payload wrapped into a ``TransportResponse``. The last entry repeats
    once the script is exhausted.
    """

    def __init__(self, *script: Scripted) -> None:
        self._script: List[Scripted] = list(script) or [{}]
        self.requests: List[TransportRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def run(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self._script) - 1)
        outcome = self._script[index]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, TransportResponse):
            return outcome
        return TransportResponse(data=outcome)


class FakeCliRunner:
    """CLI runner returning canned results per argument prefix."""

    def __init__(self, results: Optional[Dict[Tuple[str, ...], CliRunResult]] = None) -> None:
        self._results = dict(results or {})
        self.calls: List[Tuple[str, List[str], int]] = []
        self.default = CliRunResult(stdout="", stderr="unknown command", exit_code=1)

    def set(self, args: Sequence[str], *, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self._results[tuple(args)] = CliRunResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def run(self, command: str, args: List[str], timeout_ms: int) -> CliRunResult:
        self.calls.append((command, list(args), timeout_ms))
        for prefix in sorted(self._results, key=len, reverse=True):
            if tuple(args[: len(prefix)]) == prefix:
                return self._results[prefix]
        return self.default


@pytest.fixture
def fake_adapter_cls():
    return FakeAdapter


@pytest.fixture
def fake_cli_runner() -> FakeCliRunner:
    return FakeCliRunner()


@pytest.fixture
def sleep_calls() -> List[float]:
    return []


@pytest.fixture
def recording_sleep(sleep_calls: List[float]):
    async def _sleep(seconds: float) -> None:
        sleep_calls.append(seconds)

    return _sleep


@pytest.fixture
def full_ambient() -> AmbientContext:
    return AmbientContext(github_token="ghp_test", cli_installed=True, cli_authenticated=True)


@pytest.fixture
def bare_ambient() -> AmbientContext:
    return AmbientContext()


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)
