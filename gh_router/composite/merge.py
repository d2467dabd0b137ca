from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ..schemas.enums import MergeStrategy


def merge_outputs(strategy: MergeStrategy, outputs: Sequence[Any]) -> Any:
    """Fold sub-request payloads (in source order) into one step payload.

    - ``merge``: shallow dict union, later keys win; non-dict payloads are ignored.
    - ``array``: the payloads as a list, positionally.
    - ``last``: the final payload, ``None`` when there is none.
    """
    if strategy == MergeStrategy.array:
        return list(outputs)
    if strategy == MergeStrategy.last:
        return outputs[-1] if outputs else None
    if strategy == MergeStrategy.merge:
        merged: Dict[str, Any] = {}
        for output in outputs:
            if isinstance(output, dict):
                merged.update(output)
        return merged
    raise ValueError(f"unknown merge strategy: {strategy}")


def empty_output(strategy: MergeStrategy) -> Any:
    return merge_outputs(strategy, [])


def failed_indices(flags: List[bool]) -> List[int]:
    return [index for index, ok in enumerate(flags) if not ok]
