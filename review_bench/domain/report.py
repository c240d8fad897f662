"""review_bench.domain.report

Run reports and comparison results.

A :class:`RunReport` is owned by the run orchestrator until it is handed,
read-only, to the comparator. A :class:`ComparisonResult` is derived from a
set of reports and recomputed per request; nothing here is mutated after
construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .finding import Finding, Severity


class RunState(str, Enum):
    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    RUNNING = "Running"
    NORMALIZING = "Normalizing"
    MERGING = "Merging"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED)


# Forward order of the non-terminal path. Failed may follow any non-terminal state.
RUN_STATE_ORDER: Tuple[RunState, ...] = (
    RunState.PENDING,
    RunState.PROVISIONING,
    RunState.RUNNING,
    RunState.NORMALIZING,
    RunState.MERGING,
    RunState.COMPLETED,
)


class RunStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    PARTIAL = "Partial"
    FAILED = "Failed"


@dataclass(frozen=True)
class RunReport:
    """Outcome of one full analysis run (one source)."""

    run_id: str
    source_label: str
    findings: Tuple[Finding, ...]
    started_at: str
    completed_at: str
    status: RunStatus
    state: RunState

    # Terminal error for Failed runs.
    error: Optional[str] = None

    # focus -> error text for dimensions that did not produce output.
    dimension_errors: Mapping[str, str] = field(default_factory=dict)

    context_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source_label": self.source_label,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "status": self.status.value,
            "state": self.state.value,
            "error": self.error,
            "dimension_errors": dict(self.dimension_errors),
            "context_id": self.context_id,
            "findings": [f.to_dict() for f in self.findings],
        }


@dataclass(frozen=True)
class SeverityDisagreement:
    """An overlapping finding whose sources rated it differently.

    ``resolved`` / ``resolved_by`` are ``None`` when arbitration failed; the
    disagreement is then flagged ``needs_review`` and ``error`` says why.
    """

    finding: Finding
    ratings: Mapping[str, Severity]
    resolved: Optional[Severity] = None
    resolved_by: Optional[str] = None
    needs_review: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finding": self.finding.to_dict(),
            "ratings": {k: v.value for k, v in sorted(self.ratings.items())},
            "resolved": self.resolved.value if self.resolved else None,
            "resolved_by": self.resolved_by,
            "needs_review": self.needs_review,
            "error": self.error,
        }


@dataclass(frozen=True)
class ComparisonResult:
    overlapping: Tuple[Finding, ...]
    unique_to: Mapping[str, Tuple[Finding, ...]]
    severity_disagreements: Tuple[SeverityDisagreement, ...]

    # Labels of the reports that took part (failed runs are excluded).
    sources: Tuple[str, ...] = ()

    def summary(self) -> Dict[str, Any]:
        return {
            "sources": list(self.sources),
            "overlapping": len(self.overlapping),
            "unique_to": {k: len(v) for k, v in self.unique_to.items()},
            "severity_disagreements": len(self.severity_disagreements),
            "unresolved": sum(1 for d in self.severity_disagreements if d.needs_review),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "overlapping": [f.to_dict() for f in self.overlapping],
            "unique_to": {k: [f.to_dict() for f in v] for k, v in self.unique_to.items()},
            "severity_disagreements": [d.to_dict() for d in self.severity_disagreements],
        }


