"""Per-transport precondition checks.

Preflight answers one question before any adapter is touched: can this
transport possibly work in the current environment? The environment is an
explicit ``AmbientContext`` supplied by the caller for every invocation, so
the routing layer never reads process state on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from ..schemas.enums import ErrorCode, RouteSource

if TYPE_CHECKING:
    from ..adapters.cli import CliCommandRunner
    from ..core.config import Settings

logger = logging.getLogger(__name__)

_BUILTIN_FLAGS = ("github_token", "cli_installed", "cli_authenticated")
_DETECT_TIMEOUT_MS = 5_000


@dataclass(frozen=True)
class AmbientContext:
    """Environment snapshot consulted by preflight and suitability rules.

    Attributes:
        github_token: Token for the GraphQL/REST transports; blank counts as absent.
        cli_installed: Whether the GitHub CLI executable is available.
        cli_authenticated: Whether the GitHub CLI reports a logged-in session.
        flags: Additional caller-defined boolean flags for ``env_flag`` rules.
    """

    github_token: Optional[str] = None
    cli_installed: bool = False
    cli_authenticated: bool = False
    flags: Mapping[str, bool] = field(default_factory=dict)

    @property
    def has_token(self) -> bool:
        return bool(self.github_token and self.github_token.strip())

    def flag(self, name: str) -> bool:
        if name == "github_token":
            return self.has_token
        if name == "cli_installed":
            return self.cli_installed
        if name == "cli_authenticated":
            return self.cli_authenticated
        return bool(self.flags.get(name, False))

    def fingerprint(self) -> Tuple[Any, ...]:
        """Hashable summary of everything routing decisions depend on.

        The token value itself never enters the fingerprint, only its presence.
        """
        custom = tuple(sorted((k, bool(v)) for k, v in self.flags.items() if k not in _BUILTIN_FLAGS))
        return (self.has_token, self.cli_installed, self.cli_authenticated, custom)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        cli_installed: bool = False,
        cli_authenticated: bool = False,
        flags: Optional[Mapping[str, bool]] = None,
    ) -> "AmbientContext":
        return cls(
            github_token=settings.github_token,
            cli_installed=cli_installed,
            cli_authenticated=cli_authenticated,
            flags=dict(flags or {}),
        )


@dataclass(frozen=True)
class PreflightResult:
    route: RouteSource
    allowed: bool
    code: Optional[ErrorCode] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return False

    @classmethod
    def ok(cls, route: RouteSource) -> "PreflightResult":
        return cls(route=route, allowed=True)

    @classmethod
    def deny(cls, route: RouteSource, code: ErrorCode, message: str) -> "PreflightResult":
        return cls(route=route, allowed=False, code=code, message=message, details={"transport": route.value})


def check_preflight(route: RouteSource, ambient: AmbientContext) -> PreflightResult:
    """Check whether ``route`` may be attempted under ``ambient``.

    Args:
        route: Transport to check.
        ambient: Caller-supplied environment snapshot.

    Returns:
        An allowed result, or a denial carrying a non-retryable error code:
        ``AUTH`` for a missing token or an unauthenticated CLI,
        ``ADAPTER_UNSUPPORTED`` when the CLI is not installed.
    """
    if route in (RouteSource.graphql, RouteSource.rest):
        if not ambient.has_token:
            return PreflightResult.deny(
                route, ErrorCode.auth, f"GitHub token is required for the {route.value} transport"
            )
        return PreflightResult.ok(route)

    if route == RouteSource.cli:
        if not ambient.cli_installed:
            return PreflightResult.deny(route, ErrorCode.adapter_unsupported, "GitHub CLI is not installed")
        if not ambient.cli_authenticated:
            return PreflightResult.deny(
                route, ErrorCode.auth, "GitHub CLI is not authenticated; run 'gh auth login'"
            )
        return PreflightResult.ok(route)

    return PreflightResult.deny(route, ErrorCode.adapter_unsupported, f"Unsupported transport: {route}")


async def detect_cli_environment(runner: "CliCommandRunner", binary: str = "gh") -> Tuple[bool, bool]:
    """Check the GitHub CLI through ``runner``.

    Returns:
        ``(installed, authenticated)``. A missing executable or a failing
        ``--version`` means not installed; ``auth status`` must exit 0 to count
        as authenticated.
    """
    try:
        version = await runner.run(binary, ["--version"], _DETECT_TIMEOUT_MS)
    except OSError as exc:
        logger.debug("CLI version check failed for %s: %s", binary, exc)
        return False, False
    if version.exit_code != 0:
        return False, False

    try:
        status = await runner.run(binary, ["auth", "status"], _DETECT_TIMEOUT_MS)
    except OSError as exc:
        logger.debug("CLI auth check failed for %s: %s", binary, exc)
        return True, False
    return True, status.exit_code == 0
