"""review_bench.domain.finding

Canonical representation of a *normalized* review finding.

This is intentionally **engine-agnostic**. Every engine output, whatever the
model or prompt that produced it, is parsed into this structure before any
deduplication or comparison happens.

Identity
--------
A finding has no synthetic id. Two findings are "the same issue" when they sit
at the same location (within a small line tolerance) and describe the same
*category class*. See :func:`category_class` and
:mod:`review_pipeline.dedup`.

Findings are frozen: the normalizer creates them, and only the merge stages
combine several of them into a new record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, raw: Any) -> Optional["Severity"]:
        """Best-effort parse of a free-form severity label. Returns None if unknown."""
        if isinstance(raw, Severity):
            return raw
        # "High", "**HIGH**", "high (user-facing)": first known token wins.
        for tok in re.findall(r"[a-z0-9]+", str(raw or "").lower()):
            if tok in _SEVERITY_ALIASES:
                return _SEVERITY_ALIASES[tok]
        return None


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

_SEVERITY_ALIASES = {
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
    "p0": Severity.CRITICAL,
    "high": Severity.HIGH,
    "major": Severity.HIGH,
    "p1": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "med": Severity.MEDIUM,
    "p2": Severity.MEDIUM,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "info": Severity.LOW,
    "trivial": Severity.LOW,
    "p3": Severity.LOW,
}


class Confidence(str, Enum):
    DEFINITE = "Definite"
    LIKELY = "Likely"
    POTENTIAL = "Potential"
    STYLISTIC = "Stylistic"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def parse(cls, raw: Any) -> Optional["Confidence"]:
        if isinstance(raw, Confidence):
            return raw
        s = re.sub(r"[^a-z]", "", str(raw or "").lower())
        if not s:
            return None
        for c in cls:
            if s.startswith(c.value.lower()):
                return c
        return _CONFIDENCE_ALIASES.get(s)


_CONFIDENCE_RANK = {
    Confidence.DEFINITE: 4,
    Confidence.LIKELY: 3,
    Confidence.POTENTIAL: 2,
    Confidence.STYLISTIC: 1,
}

_CONFIDENCE_ALIASES = {
    "certain": Confidence.DEFINITE,
    "confirmed": Confidence.DEFINITE,
    "high": Confidence.DEFINITE,
    "probable": Confidence.LIKELY,
    "medium": Confidence.LIKELY,
    "possible": Confidence.POTENTIAL,
    "low": Confidence.POTENTIAL,
    "style": Confidence.STYLISTIC,
    "nit": Confidence.STYLISTIC,
}


# Canonical category classes. Free-form categories reported by an engine are
# folded onto one of these when a keyword matches; otherwise the slugified
# category itself is the class.
CATEGORY_CLASSES: Tuple[str, ...] = (
    "architecture",
    "defects",
    "error-handling",
    "type-design",
    "test-coverage",
    "comment-accuracy",
)

_CATEGORY_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("error-handling", "error"),
    ("error-handling", "exception"),
    ("error-handling", "panic"),
    ("error-handling", "unwrap"),
    ("test-coverage", "test"),
    ("test-coverage", "coverage"),
    ("comment-accuracy", "comment"),
    ("comment-accuracy", "doc"),
    ("type-design", "type"),
    ("type-design", "invariant"),
    ("type-design", "encapsulation"),
    ("architecture", "architect"),
    ("architecture", "coupling"),
    ("architecture", "design"),
    ("architecture", "module"),
    ("architecture", "layer"),
    ("defects", "defect"),
    ("defects", "bug"),
    ("defects", "logic"),
    ("defects", "race"),
    ("defects", "correctness"),
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def category_class(category: Optional[str]) -> str:
    """Fold a free-form category label onto a stable class key."""
    s = _SLUG_RE.sub("-", str(category or "").lower()).strip("-")
    if not s:
        return "uncategorized"
    if s in CATEGORY_CLASSES:
        return s
    for cls, needle in _CATEGORY_KEYWORDS:
        if needle in s:
            return cls
    return s


@dataclass(frozen=True)
class Location:
    """Where a finding points.

    ``unit`` is usually a repo-relative file path. ``position`` is a 1-based
    line number; ``None`` means the finding is about the unit as a whole.
    A location without a unit is *unlocated*.
    """

    unit: Optional[str] = None
    position: Optional[int] = None
    end_position: Optional[int] = None

    @property
    def is_located(self) -> bool:
        return bool(self.unit)

    def describe(self) -> str:
        if not self.unit:
            return "unlocated"
        if self.position is None:
            return self.unit
        if self.end_position is not None and self.end_position != self.position:
            return f"{self.unit}:{self.position}-{self.end_position}"
        return f"{self.unit}:{self.position}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "position": self.position,
            "end_position": self.end_position,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Location":
        if not isinstance(d, Mapping):
            return cls()
        return cls(
            unit=d.get("unit") or None,
            position=_safe_int(d.get("position")),
            end_position=_safe_int(d.get("end_position")),
        )


def _safe_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Finding:
    """Engine-agnostic normalized finding."""

    location: Location
    severity: Severity
    category: str
    description: str
    confidence: Confidence = Confidence.LIKELY
    contributing_sources: FrozenSet[str] = field(default_factory=frozenset)

    # Normalizer remarks (e.g. "severity unparseable; defaulted to Low").
    notes: Tuple[str, ...] = ()

    @property
    def category_class(self) -> str:
        return category_class(self.category)

    @property
    def is_located(self) -> bool:
        return self.location.is_located

    def with_sources(self, sources: Iterable[str]) -> "Finding":
        return replace(self, contributing_sources=frozenset(sources))

    def sort_key(self) -> Tuple[Any, ...]:
        """Total deterministic ordering over every field of the finding."""
        loc = self.location
        return (
            loc.unit or "",
            loc.position if loc.position is not None else -1,
            loc.end_position if loc.end_position is not None else -1,
            self.category_class,
            self.description,
            -self.severity.rank,
            self.category,
            -self.confidence.rank,
            tuple(sorted(self.contributing_sources)),
            self.notes,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "location": self.location.to_dict(),
            "severity": self.severity.value,
            "category": self.category,
            "category_class": self.category_class,
            "description": self.description,
            "confidence": self.confidence.value,
            "contributing_sources": sorted(self.contributing_sources),
        }
        if self.notes:
            out["notes"] = list(self.notes)
        return out

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Finding":
        if not isinstance(d, Mapping):
            raise TypeError(f"Finding.from_dict expected mapping, got {type(d)!r}")
        sev = Severity.parse(d.get("severity"))
        if sev is None:
            raise ValueError(f"invalid severity: {d.get('severity')!r}")
        conf = Confidence.parse(d.get("confidence")) or Confidence.LIKELY
        sources: List[str] = [str(s) for s in (d.get("contributing_sources") or []) if s]
        return cls(
            location=Location.from_dict(d.get("location") or {}),
            severity=sev,
            category=str(d.get("category") or ""),
            description=str(d.get("description") or ""),
            confidence=conf,
            contributing_sources=frozenset(sources),
            notes=tuple(str(n) for n in (d.get("notes") or [])),
        )
