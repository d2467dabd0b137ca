"""Route selection: preflight, suitability rules and the resolution cache."""

from .cache import ResolutionCache, build_cache_key
from .preflight import AmbientContext, PreflightResult, check_preflight, detect_cli_environment
from .selector import RouteCandidate, RoutePlan, RouteSelector
from .suitability import evaluate_suitability, rule_holds

__all__ = [
    "AmbientContext",
    "PreflightResult",
    "ResolutionCache",
    "RouteCandidate",
    "RoutePlan",
    "RouteSelector",
    "build_cache_key",
    "check_preflight",
    "detect_cli_environment",
    "evaluate_suitability",
    "rule_holds",
]
