"""review_bench.domain.errors

Exception taxonomy shared by every pipeline stage.

Failures are contained at the smallest enclosing unit:

* :class:`EngineError` - one dimension worker (or one arbitration call)
* :class:`ProvisioningError` - one run
* :class:`ArbitrationError` - one severity disagreement
* :class:`AllRunsFailedError` - the whole comparison (nothing left to compare)

Each error is attached to the record that owns it (dimension outcome, run
report, disagreement) so the final result surfaces it.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional


class ReviewError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(ReviewError):
    """Invalid or incomplete configuration."""


class ProvisioningError(ReviewError):
    """An isolation context could not be allocated."""


class EngineErrorKind(str, Enum):
    TIMEOUT = "Timeout"
    CRASH = "Crash"
    MALFORMED_OUTPUT = "MalformedOutput"


class EngineError(ReviewError):
    """The analysis engine failed to produce usable output for one invocation."""

    def __init__(self, kind: EngineErrorKind, message: str = "", *, focus: Optional[str] = None) -> None:
        self.kind = EngineErrorKind(kind)
        self.message = message
        self.focus = focus
        super().__init__(self.describe())

    def describe(self) -> str:
        prefix = f"{self.kind.value}"
        if self.focus:
            prefix += f" [{self.focus}]"
        return f"{prefix}: {self.message}" if self.message else prefix


class ArbitrationError(ReviewError):
    """The arbitrator could not resolve a severity disagreement."""


class InvalidTransitionError(ReviewError):
    """A run state machine was asked to move backwards or out of a terminal state."""


class AllRunsFailedError(ReviewError):
    """Every run failed; there is nothing to compare."""

    def __init__(self, causes: Mapping[str, str]) -> None:
        self.causes = dict(causes)
        lines = [f"{label}: {cause}" for label, cause in self.causes.items()]
        super().__init__(
            f"all {len(self.causes)} run(s) failed:\n  " + "\n  ".join(lines)
            if lines
            else "no runs to compare"
        )
