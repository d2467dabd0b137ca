"""Capability routing and composite execution for GitHub operations.

Callers name a capability (``issue.view``, ``pr.reviews.request``) and the
engine decides whether to satisfy it through the GitHub CLI, GraphQL or REST,
retrying and falling back as needed, and returns a uniform result envelope.
"""

from .engine import CapabilityEngine, EngineDeps, build_engine, detect_ambient
from .errors import (
    CapabilityNotFoundError,
    DescriptorValidationError,
    RouterError,
    TransportFailure,
)
from .registry import DescriptorRegistry, OperationCard
from .routing import AmbientContext, ResolutionCache
from .schemas import (
    ChainResult,
    ChainStatus,
    ErrorCode,
    ResultEnvelope,
    RouteSource,
    TaskOptions,
    TaskRequest,
)

__all__ = [
    "AmbientContext",
    "CapabilityEngine",
    "CapabilityNotFoundError",
    "ChainResult",
    "ChainStatus",
    "DescriptorRegistry",
    "DescriptorValidationError",
    "EngineDeps",
    "ErrorCode",
    "OperationCard",
    "ResolutionCache",
    "ResultEnvelope",
    "RouteSource",
    "RouterError",
    "TaskOptions",
    "TaskRequest",
    "TransportFailure",
    "build_engine",
    "detect_ambient",
]
