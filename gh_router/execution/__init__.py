"""Single-capability execution: request building, error classification, normalization, retry/fallback."""

from .classifier import classify_error, classify_message
from .controller import ControllerState, RetryFallbackController, check_required_outputs
from .normalizer import NormalizerMeta, normalize_error, normalize_result
from .requests import build_transport_request

__all__ = [
    "ControllerState",
    "NormalizerMeta",
    "RetryFallbackController",
    "build_transport_request",
    "check_required_outputs",
    "classify_error",
    "classify_message",
    "normalize_error",
    "normalize_result",
]
