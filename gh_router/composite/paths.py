"""Field-path resolution for composite step inputs.

Paths are dotted and rooted at one of:

- ``input.<path>``: the chain input.
- ``steps.<step_id>[.<path>]``: a prior step's merged payload.
- ``item[.<path>]``: the current element of a repeat-over-collection step.

Numeric segments index into lists.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

ROOTS = ("input", "steps", "item")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _step(value: Any, segment: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(segment, MISSING)
    if isinstance(value, (list, tuple)) and segment.lstrip("-").isdigit():
        index = int(segment)
        if -len(value) <= index < len(value):
            return value[index]
    return MISSING


def resolve_path(
    path: str,
    *,
    input: Mapping[str, Any],
    steps: Mapping[str, Any],
    item: Any = MISSING,
) -> Any:
    """Resolve ``path``; returns ``MISSING`` when any segment is absent."""
    root, _, rest = path.partition(".")
    if root == "input":
        current: Any = input
    elif root == "steps":
        current = steps
    elif root == "item":
        current = item
    else:
        return MISSING

    if current is MISSING:
        return MISSING
    if not rest:
        return current
    for segment in rest.split("."):
        current = _step(current, segment)
        if current is MISSING:
            return MISSING
    return current


def split_guard(guard: str) -> Tuple[str, Optional[str]]:
    """Split a ``when_any`` entry into ``(step_id, output_path or None)``."""
    step_id, _, path = guard.partition(".")
    return step_id, (path or None)


def guard_holds(guard: str, outcomes: Mapping[str, bool], payloads: Dict[str, Any]) -> bool:
    """A bare step id holds when that step succeeded; ``<id>.<path>`` when the value is truthy."""
    step_id, path = split_guard(guard)
    if not outcomes.get(step_id, False):
        return False
    if path is None:
        return True
    value = resolve_path(f"steps.{step_id}.{path}", input={}, steps=payloads)
    return value is not MISSING and bool(value)
