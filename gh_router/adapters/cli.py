"""GitHub CLI transport.

``SafeCliCommandRunner`` spawns the executable directly (never through a
shell), kills it when the per-attempt timeout elapses and refuses to buffer
more than ``max_output_bytes`` of combined stdout/stderr. ``CliAdapter``
turns a ``TransportRequest`` into an argument vector, runs it and parses the
JSON output.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, runtime_checkable

from ..errors import CliCommandError, TransportFailure
from ..schemas.enums import ErrorCode
from .base import TransportRequest, TransportResponse

DEFAULT_MAX_OUTPUT_BYTES = 1_000_000
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class CliRunResult:
    stdout: str
    stderr: str
    exit_code: int


@runtime_checkable
class CliCommandRunner(Protocol):
    async def run(self, command: str, args: List[str], timeout_ms: int) -> CliRunResult: ...


class _OutputOverflow(Exception):
    pass


class _OutputBudget:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    def consume(self, size: int) -> None:
        self.used += size
        if self.used > self.limit:
            raise _OutputOverflow()


class SafeCliCommandRunner:
    """Run CLI commands with a hard timeout and output ceiling.

    Raises:
        ValueError: If ``timeout_ms`` is not positive.
        OSError: If the executable cannot be spawned (e.g. not installed).
        TransportFailure: ``TIMEOUT`` when the deadline passes, ``UNKNOWN``
            when the output ceiling is exceeded. The process is killed in both cases.
    """

    def __init__(self, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> None:
        self._max_output_bytes = max_output_bytes
        self._logger = logging.getLogger(__name__)

    async def run(self, command: str, args: List[str], timeout_ms: int) -> CliRunResult:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be a positive number")

        self._logger.debug("SafeCliCommandRunner.run: %s %s (timeout=%sms)", command, args, timeout_ms)
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        budget = _OutputBudget(self._max_output_bytes)
        stdout_task = asyncio.ensure_future(self._drain(process.stdout, budget))
        stderr_task = asyncio.ensure_future(self._drain(process.stderr, budget))
        wait_task = asyncio.ensure_future(process.wait())
        tasks = [stdout_task, stderr_task, wait_task]

        try:
            await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            await self._terminate(process, tasks)
            raise TransportFailure(ErrorCode.timeout, f"CLI command timed out after {timeout_ms}ms") from None
        except _OutputOverflow:
            await self._terminate(process, tasks)
            raise TransportFailure(
                ErrorCode.unknown,
                f"CLI output exceeded {self._max_output_bytes} bytes",
                retryable=False,
            ) from None

        return CliRunResult(
            stdout=stdout_task.result().decode("utf-8", errors="replace"),
            stderr=stderr_task.result().decode("utf-8", errors="replace"),
            exit_code=wait_task.result(),
        )

    @staticmethod
    async def _drain(stream: Optional[asyncio.StreamReader], budget: _OutputBudget) -> bytes:
        if stream is None:
            return b""
        chunks: List[bytes] = []
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            budget.consume(len(chunk))
            chunks.append(chunk)
        return b"".join(chunks)

    async def _terminate(self, process: asyncio.subprocess.Process, tasks: List["asyncio.Future[Any]"]) -> None:
        for task in tasks:
            task.cancel()
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
        await asyncio.gather(*tasks, return_exceptions=True)


class CliAdapter:
    """Execute ``cli`` transport requests through a ``CliCommandRunner``.

    Args:
        runner: Process runner; defaults to ``SafeCliCommandRunner``.
        binary: Executable name or path of the GitHub CLI.
    """

    def __init__(self, runner: Optional[CliCommandRunner] = None, *, binary: str = "gh") -> None:
        self._runner = runner or SafeCliCommandRunner()
        self._binary = binary
        self._logger = logging.getLogger(__name__)

    @staticmethod
    def build_argv(request: TransportRequest) -> List[str]:
        argv = [*request.command, *request.args]
        if request.json_fields:
            argv.extend(["--json", ",".join(request.json_fields)])
        return argv

    async def run(self, request: TransportRequest) -> TransportResponse:
        argv = self.build_argv(request)
        self._logger.debug("CliAdapter.run: capability=%s argv=%s", request.capability_id, argv)
        result = await self._runner.run(self._binary, argv, request.timeout_ms)

        if result.exit_code != 0:
            raise CliCommandError(" ".join([self._binary, *request.command]), result.exit_code, result.stderr)

        if not request.json_fields:
            return TransportResponse(data={"output": result.stdout.strip()}, status=result.exit_code)

        try:
            data = json.loads(result.stdout) if result.stdout.strip() else None
        except json.JSONDecodeError:
            raise TransportFailure(ErrorCode.server, "Failed to parse CLI JSON output", retryable=False) from None
        return TransportResponse(data=data, status=result.exit_code)
