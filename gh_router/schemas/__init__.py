"""Shared router models: enums, task requests and result envelopes."""

from .base import BaseSchema, FrozenSchema
from .enums import (
    AttemptStatus,
    ChainStatus,
    ErrorCode,
    MergeStrategy,
    ReasonCode,
    RouteSource,
    is_retryable_error_code,
)
from .envelope import (
    AttemptRecord,
    ChainMeta,
    ChainResult,
    ChainStepResult,
    ResultEnvelope,
    ResultError,
    ResultMeta,
)
from .task import TaskOptions, TaskRequest

__all__ = [
    "AttemptRecord",
    "AttemptStatus",
    "BaseSchema",
    "ChainMeta",
    "ChainResult",
    "ChainStatus",
    "ChainStepResult",
    "ErrorCode",
    "FrozenSchema",
    "MergeStrategy",
    "ReasonCode",
    "ResultEnvelope",
    "ResultError",
    "ResultMeta",
    "RouteSource",
    "TaskOptions",
    "TaskRequest",
    "is_retryable_error_code",
]
