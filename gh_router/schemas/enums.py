from __future__ import annotations

from enum import Enum


class RouteSource(str, Enum):
    """Transport kinds a capability can be satisfied through."""

    cli = "cli"
    graphql = "graphql"
    rest = "rest"


class ErrorCode(str, Enum):
    validation = "VALIDATION"
    auth = "AUTH"
    adapter_unsupported = "ADAPTER_UNSUPPORTED"
    network = "NETWORK"
    rate_limit = "RATE_LIMIT"
    server = "SERVER"
    timeout = "TIMEOUT"
    unknown = "UNKNOWN"


RETRYABLE_ERROR_CODES = frozenset(
    {
        ErrorCode.network,
        ErrorCode.rate_limit,
        ErrorCode.server,
        ErrorCode.timeout,
    }
)


def is_retryable_error_code(code: ErrorCode) -> bool:
    return code in RETRYABLE_ERROR_CODES


class ReasonCode(str, Enum):
    """Why a transport was chosen to head the candidate list."""

    card_preferred = "CARD_PREFERRED"
    card_fallback = "CARD_FALLBACK"
    coverage_gap = "COVERAGE_GAP"
    efficiency_gain = "EFFICIENCY_GAIN"
    output_shape_requirement = "OUTPUT_SHAPE_REQUIREMENT"
    capability_limit = "CAPABILITY_LIMIT"


class AttemptStatus(str, Enum):
    success = "success"
    error = "error"
    skipped = "skipped"


class ChainStatus(str, Enum):
    success = "success"
    partial = "partial"
    failed = "failed"


class MergeStrategy(str, Enum):
    merge = "merge"
    array = "array"
    last = "last"
