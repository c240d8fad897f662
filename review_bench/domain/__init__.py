"""review_bench.domain

Domain objects that form the *contract* between pipeline stages.

Key idea
--------
Engines produce free-form text. The pipeline normalizes that into a
source-agnostic :class:`Finding` so deduplication and cross-run comparison do
not need to know anything about the engine or model that produced it.
"""

from __future__ import annotations

from .context import IsolationContext
from .errors import (
    AllRunsFailedError,
    ArbitrationError,
    ConfigError,
    EngineError,
    EngineErrorKind,
    InvalidTransitionError,
    ProvisioningError,
    ReviewError,
)
from .finding import (
    CATEGORY_CLASSES,
    Confidence,
    Finding,
    Location,
    Severity,
    category_class,
)
from .report import (
    RUN_STATE_ORDER,
    ComparisonResult,
    RunReport,
    RunState,
    RunStatus,
    SeverityDisagreement,
)

__all__ = [
    "AllRunsFailedError",
    "ArbitrationError",
    "CATEGORY_CLASSES",
    "ComparisonResult",
    "ConfigError",
    "Confidence",
    "EngineError",
    "EngineErrorKind",
    "Finding",
    "InvalidTransitionError",
    "IsolationContext",
    "Location",
    "ProvisioningError",
    "RUN_STATE_ORDER",
    "ReviewError",
    "RunReport",
    "RunState",
    "RunStatus",
    "Severity",
    "SeverityDisagreement",
    "category_class",
]
