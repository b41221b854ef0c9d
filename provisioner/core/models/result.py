"""
ProcedureResult and BatchReport — the execution contract.

Every external call (resolver, precondition, package manager, hook)
returns a ProcedureResult. Callers decide what a failure means;
procedures and adapters themselves never raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field


class ProcedureResult(BaseModel):
    """Outcome of one external procedure call."""

    procedure: str                  # human-readable description of what ran
    status: str = "ok"              # ok, skipped, failed
    output: str = ""
    error: str | None = None
    return_code: int | None = None
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the procedure succeeded (or had nothing to do)."""
        return self.status in ("ok", "skipped")

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, procedure: str, output: str = "", **kwargs: Any) -> ProcedureResult:
        """Create a success result."""
        return cls(procedure=procedure, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, procedure: str, error: str, **kwargs: Any) -> ProcedureResult:
        """Create a failure result."""
        return cls(procedure=procedure, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, procedure: str, reason: str = "", **kwargs: Any) -> ProcedureResult:
        """Create a skip result (nothing needed doing)."""
        return cls(procedure=procedure, status="skipped", output=reason, **kwargs)


@dataclass
class BatchReport:
    """Aggregate result of a batch operation.

    Batch operations never stop at the first failure. Every attempted
    entry lands in ``succeeded`` or ``failed``; entries that do not
    apply to this host land in ``skipped``.
    """

    operation: str = ""
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)   # not applicable here

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_ok(self) -> bool:
        return not self.failed

    @property
    def status(self) -> str:
        if not self.failed:
            return "ok"
        if self.succeeded:
            return "partial"
        return "failed"

    def record(self, name: str, result: ProcedureResult) -> None:
        """File one entry's result under succeeded or failed."""
        if result.ok:
            self.succeeded.append(name)
        else:
            self.failed[name] = result.error or "failed"

    def mark_skipped(self, name: str, reason: str) -> None:
        """Record an entry that does not apply (e.g. manager unavailable)."""
        self.skipped[name] = reason

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status,
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
            "skipped": dict(self.skipped),
        }
