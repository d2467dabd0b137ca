"""Result envelope models.

Every single-capability call returns a ``ResultEnvelope``; composite and batch
calls return a ``ChainResult`` built from per-step entries. Optional metadata
is represented by ``None`` on the model and omitted from the wire shape
produced by ``to_dict()``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from .base import FrozenSchema
from .enums import AttemptStatus, ChainStatus, ErrorCode, ReasonCode, RouteSource


class ResultError(FrozenSchema):
    code: ErrorCode
    message: str
    retryable: bool = False
    details: Optional[Dict[str, Any]] = None


class AttemptRecord(FrozenSchema):
    """One transport try, appended in execution order."""

    route: RouteSource
    status: AttemptStatus
    error_code: Optional[ErrorCode] = None
    duration_ms: Optional[float] = None


class ResultMeta(FrozenSchema):
    capability_id: str
    route_used: Optional[RouteSource] = None
    reason: Optional[ReasonCode] = None
    attempts: List[AttemptRecord] = Field(default_factory=list)
    pagination: Optional[Dict[str, Any]] = None
    timings: Optional[Dict[str, float]] = None
    cost: Optional[Dict[str, Any]] = None


class ResultEnvelope(FrozenSchema):
    """Uniform success/error wrapper; exactly one of ``data``/``error`` is populated."""

    success: bool
    data: Any = None
    error: Optional[ResultError] = None
    meta: ResultMeta

    @model_validator(mode="after")
    def _check_exclusive(self) -> "ResultEnvelope":
        if self.success and self.error is not None:
            raise ValueError("successful envelope must not carry an error")
        if not self.success and self.error is None:
            raise ValueError("failed envelope must carry an error")
        if not self.success and self.data is not None:
            raise ValueError("failed envelope must not carry data")
        return self

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.success:
            out["data"] = self.data
        elif self.error is not None:
            out["error"] = self.error.model_dump(mode="json", exclude_none=True)
        out["meta"] = self.meta.model_dump(mode="json", exclude_none=True)
        return out


class ChainStepResult(FrozenSchema):
    task: str
    ok: bool
    data: Any = None
    error: Optional[ResultError] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"task": self.task, "ok": self.ok}
        if self.ok:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error.model_dump(mode="json", exclude_none=True)
        if self.skipped:
            out["skipped"] = True
        return out


class ChainMeta(FrozenSchema):
    route_used: Optional[RouteSource] = None
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0


class ChainResult(FrozenSchema):
    status: ChainStatus
    results: List[ChainStepResult] = Field(default_factory=list)
    meta: ChainMeta = Field(default_factory=ChainMeta)

    @classmethod
    def assemble(
        cls,
        results: List[ChainStepResult],
        *,
        routes_used: Optional[List[RouteSource]] = None,
    ) -> "ChainResult":
        """Build a chain result and derive its status and counters from ``results``.

        Args:
            results: Per-step entries in declared order.
            routes_used: Transports used by every executed sub-request. ``route_used``
                is reported only when they are all the same.

        Returns:
            The assembled ``ChainResult``.
        """
        total = len(results)
        succeeded = sum(1 for r in results if r.ok)
        skipped = sum(1 for r in results if r.skipped)
        if total > 0 and succeeded == total:
            status = ChainStatus.success
        elif succeeded == 0:
            status = ChainStatus.failed
        else:
            status = ChainStatus.partial

        distinct = set(routes_used or [])
        route_used = next(iter(distinct)) if len(distinct) == 1 else None
        return cls(
            status=status,
            results=list(results),
            meta=ChainMeta(
                route_used=route_used,
                total=total,
                succeeded=succeeded,
                failed=total - succeeded,
                skipped=skipped,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "results": [r.to_dict() for r in self.results],
            "meta": self.meta.model_dump(mode="json", exclude_none=True),
        }
