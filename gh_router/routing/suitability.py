"""Evaluation of card suitability rules.

A transport is suitable when every rule that gates it holds. Rules gating
other transports are ignored, and a transport without rules is always
suitable.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from ..registry.types import AlwaysRule, EnvFlagRule, InputFieldRule, SuitabilityRule
from ..schemas.enums import ReasonCode, RouteSource
from .preflight import AmbientContext


def is_present(input: Mapping[str, Any], field: str) -> bool:
    value = input.get(field)
    return value is not None and value != ""


def rule_holds(rule: SuitabilityRule, input: Mapping[str, Any], ambient: AmbientContext) -> bool:
    if isinstance(rule, AlwaysRule):
        return True
    if isinstance(rule, EnvFlagRule):
        return ambient.flag(rule.flag) is rule.expected
    if isinstance(rule, InputFieldRule):
        return is_present(input, rule.field) is rule.present
    raise TypeError(f"unsupported suitability rule: {type(rule).__name__}")


def evaluate_suitability(
    rules: List[SuitabilityRule],
    route: RouteSource,
    input: Mapping[str, Any],
    ambient: AmbientContext,
) -> Tuple[bool, Optional[ReasonCode]]:
    """Return ``(suitable, explicit_reason)`` for ``route``.

    ``explicit_reason`` is the ``reason`` of the first rule gating ``route``
    that declares one, only reported when the transport is suitable.
    """
    reason: Optional[ReasonCode] = None
    for rule in rules:
        if rule.transport != route:
            continue
        if not rule_holds(rule, input, ambient):
            return False, None
        if reason is None and rule.reason is not None:
            reason = rule.reason
    return True, reason


def input_fields_referenced(rules: List[SuitabilityRule]) -> Tuple[str, ...]:
    """Input fields read by ``input_field`` rules, sorted and de-duplicated."""
    return tuple(sorted({rule.field for rule in rules if isinstance(rule, InputFieldRule)}))
