from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from .base import FrozenSchema


class TaskOptions(FrozenSchema):
    """Per-request execution overrides."""

    max_attempts_per_route: Optional[int] = Field(
        default=None,
        ge=1,
        le=10,
        description="Overrides the configured per-transport attempt budget for this request.",
    )
    timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        description="Overrides the per-attempt timeout declared by the card's execution hints.",
    )
    trace: bool = Field(
        default=False,
        description="Reserved for callers that want verbose logging of the attempt loop.",
    )


class TaskRequest(FrozenSchema):
    """A request to run one capability with the given input."""

    task: str = Field(..., min_length=1, description="Capability identifier, e.g. 'issue.view'.")
    input: Dict[str, Any] = Field(default_factory=dict)
    options: TaskOptions = Field(default_factory=TaskOptions)
