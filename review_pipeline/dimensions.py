"""review_pipeline.dimensions

Central registry of review dimensions.

Why this exists
---------------
Several parts of the pipeline need to agree on the *same* dimension facts:

- which dimensions exist and in which order they fan out
- the focus prompt each worker sends to the engine
- which category class each worker is the specialist for (dedup tie-break)

This module defines them *once*. The registry is read-only configuration and
is the only thing, besides the arbitrator identity, shared between concurrent
runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from review_bench.domain import ConfigError, category_class

# Output contract the normalizer parses. Every focus prompt ends with it.
FINDING_FORMAT = """\
Report each finding as a block of labeled fields, one field per line:

Location: <path>:<line>
Severity: Critical | High | Medium | Low
Category: <category>
Confidence: Definite | Likely | Potential | Stylistic
Description: <what is wrong and why it matters>

Separate findings with a line containing only ---.
If you find nothing, reply with "No findings."
"""

# Source label used for findings that did not come from a dimension worker.
GENERAL_FOCUS = "general"


@dataclass(frozen=True)
class DimensionInfo:
    """Static metadata describing one dimension worker."""

    key: str
    label: str
    focus: str

    @property
    def category_class(self) -> str:
        return category_class(self.key)

    def prompt(self) -> str:
        return f"Review the code in scope for {self.label.lower()} issues only.\n{self.focus}\n\n{FINDING_FORMAT}"


# Canonical registry.
#
# NOTE: dict insertion order is preserved, so the order here is the fan-out
# order and the order dimension outcomes are reported in.
DIMENSIONS: Dict[str, DimensionInfo] = {
    "architecture": DimensionInfo(
        key="architecture",
        label="Architecture",
        focus="Look at module boundaries, coupling, layering violations and responsibilities that live in the wrong place.",
    ),
    "defects": DimensionInfo(
        key="defects",
        label="Defects",
        focus="Look for logic errors, off-by-one mistakes, races, incorrect state transitions and other bugs.",
    ),
    "error-handling": DimensionInfo(
        key="error-handling",
        label="Error handling",
        focus="Look for swallowed errors, panics on recoverable paths, missing context on propagated errors and silent fallbacks.",
    ),
    "type-design": DimensionInfo(
        key="type-design",
        label="Type design",
        focus="Look for types that fail to encode their invariants, leaky encapsulation and primitive obsession.",
    ),
    "test-coverage": DimensionInfo(
        key="test-coverage",
        label="Test coverage",
        focus="Look for important behavior without tests, tests that assert nothing and missing edge cases.",
    ),
    "comment-accuracy": DimensionInfo(
        key="comment-accuracy",
        label="Comment accuracy",
        focus="Look for comments and docs that no longer match the code they describe.",
    ),
}

DEFAULT_DIMENSIONS: Tuple[str, ...] = tuple(DIMENSIONS.keys())


def resolve_dimensions(keys: Optional[Iterable[str]] = None) -> List[DimensionInfo]:
    """Return DimensionInfo records for *keys* (all dimensions if empty)."""
    wanted = [str(k).strip() for k in (keys or ()) if str(k).strip()]
    if not wanted:
        return list(DIMENSIONS.values())

    out: List[DimensionInfo] = []
    seen = set()
    for k in wanted:
        if k not in DIMENSIONS:
            raise ConfigError(f"Unknown dimension '{k}'. Valid: {list(DIMENSIONS)}")
        if k in seen:
            continue
        seen.add(k)
        out.append(DIMENSIONS[k])
    return out


def focus_specificity(source: str, finding_class: str) -> int:
    """How authoritative *source* is for findings of *finding_class*.

    2 - the source is the specialist worker for that class
    1 - another dimension worker mentioned it incidentally
    0 - a generalist / unknown source
    """
    info = DIMENSIONS.get(source)
    if info is None:
        return 0
    if info.category_class == finding_class:
        return 2
    return 1
