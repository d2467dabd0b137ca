from __future__ import annotations

from typing import Any, Dict, List, Optional

from .schemas.enums import ErrorCode


class RouterError(Exception):
    pass


class CapabilityNotFoundError(RouterError):
    def __init__(self, capability_id: str) -> None:
        super().__init__(f"Capability not found: '{capability_id}'")
        self.capability_id = capability_id


class DescriptorValidationError(RouterError):
    def __init__(self, capability_id: str, problems: List[str]) -> None:
        super().__init__(f"Invalid operation card '{capability_id}': {'; '.join(problems)}")
        self.capability_id = capability_id
        self.problems = list(problems)


class RequestBuildError(RouterError):
    """Raised when a card's execution hints cannot be filled from the request input."""

    def __init__(self, capability_id: str, message: str) -> None:
        super().__init__(f"Cannot build transport request for '{capability_id}': {message}")
        self.capability_id = capability_id


class TransportFailure(RouterError):
    """Adapter failure raised with whatever the adapter knows about it.

    ``code`` is ``None`` when the adapter cannot tell; the error classifier
    then derives one from the message. ``retryable`` overrides the default
    retryability of the resulting code when set.
    """

    def __init__(
        self,
        code: Optional[ErrorCode],
        message: str,
        *,
        retryable: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable
        self.details = details


class CliCommandError(TransportFailure):
    def __init__(
        self,
        command: str,
        exit_code: int,
        stderr: str,
        *,
        code: Optional[ErrorCode] = None,
    ) -> None:
        message = stderr.strip() or f"{command} exited with code {exit_code}"
        super().__init__(code, message, details={"exit_code": exit_code, "command": command})
        self.exit_code = exit_code
        self.stderr = stderr


class GraphqlResponseError(TransportFailure):
    def __init__(self, messages: List[str], *, code: Optional[ErrorCode] = None) -> None:
        super().__init__(code, "; ".join(messages) or "GraphQL request failed", details={"errors": list(messages)})
        self.messages = list(messages)
