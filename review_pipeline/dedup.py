"""review_pipeline.dedup

Merge findings that describe the same underlying issue.

Grouping key
------------
``(location.unit, category class)``, then positions are clustered inside each
group: a finding joins the current cluster if its start line is within
``tolerance`` lines of the cluster end. This absorbs the off-by-a-few-lines
disagreement between independent sources describing the same code region.

- unit-level findings (a unit but no line) form one cluster per group
- unlocated findings are merged only with findings that have the exact same
  description

Merging a cluster
-----------------
- severity: the rating from the most specific source (the dimension worker
  that owns the category class outranks an incidental mention by another
  dimension), highest severity among equally specific sources
- contributing sources: union
- description: distinct descriptions, in stable order, one per line
- confidence: highest among members

A cluster of one is returned unchanged, and clusters produced by one pass are
more than ``tolerance`` lines apart, so ``dedup(dedup(x)) == dedup(x)``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from review_bench.domain import Finding, Location

from .dimensions import focus_specificity

T = TypeVar("T")

DEFAULT_TOLERANCE = 3
DESCRIPTION_SEPARATOR = "\n"


def _identity(x):
    return x


def cluster_findings(
    items: Sequence[T],
    *,
    tolerance: int = DEFAULT_TOLERANCE,
    finding_of: Callable[[T], Finding] = _identity,
) -> List[List[T]]:
    """Cluster items that describe the same issue.

    ``items`` may be findings or anything wrapping one (``finding_of``
    extracts it), so the cross-run comparator can cluster ``(run, finding)``
    pairs with the same rules.
    """
    tol = max(0, int(tolerance))

    by_key: Dict[Tuple[str, str], List[T]] = defaultdict(list)
    unlocated: Dict[str, List[T]] = defaultdict(list)
    for it in items:
        f = finding_of(it)
        if f.is_located:
            by_key[(str(f.location.unit), f.category_class)].append(it)
        else:
            unlocated[f.description].append(it)

    clusters: List[List[T]] = []
    for key in sorted(by_key):
        group = by_key[key]
        unit_level = [it for it in group if finding_of(it).location.position is None]
        numbered = [it for it in group if finding_of(it).location.position is not None]
        if unit_level:
            clusters.append(sorted(unit_level, key=lambda it: finding_of(it).sort_key()))

        numbered.sort(key=lambda it: finding_of(it).sort_key())
        current: List[T] = []
        current_end = 0
        for it in numbered:
            loc = finding_of(it).location
            start = int(loc.position or 0)
            end = max(start, int(loc.end_position or start))
            if current and start <= current_end + tol:
                current.append(it)
                current_end = max(current_end, end)
                continue
            if current:
                clusters.append(current)
            current = [it]
            current_end = end
        if current:
            clusters.append(current)

    for desc in sorted(unlocated):
        clusters.append(sorted(unlocated[desc], key=lambda it: finding_of(it).sort_key()))

    return clusters


def _authority(f: Finding) -> int:
    cls = f.category_class
    return max((focus_specificity(s, cls) for s in f.contributing_sources), default=0)


def _merged_location(members: Sequence[Finding]) -> Location:
    first = members[0].location
    positions = [m.location.position for m in members if m.location.position is not None]
    if not first.unit or not positions:
        return first
    start = min(positions)
    end = max(
        int(m.location.end_position or m.location.position)
        for m in members
        if m.location.position is not None
    )
    return Location(unit=first.unit, position=start, end_position=end if end != start else None)


def _distinct_descriptions(members: Sequence[Finding]) -> str:
    seen: List[str] = []
    for m in members:
        for part in m.description.split(DESCRIPTION_SEPARATOR):
            part = part.strip()
            if part and part not in seen:
                seen.append(part)
    return DESCRIPTION_SEPARATOR.join(seen)


def merge_group(members: Sequence[Finding], *, sources: Optional[Sequence[str]] = None) -> Finding:
    """Merge findings already known to describe the same issue into one record."""
    if not members:
        raise ValueError("merge_group requires at least one finding")
    if len(members) == 1 and sources is None:
        return members[0]

    ordered = sorted(members, key=lambda f: f.sort_key())
    lead = max(ordered, key=lambda f: (_authority(f), f.severity.rank))
    confidence = max((m.confidence for m in ordered), key=lambda c: c.rank)

    all_sources = set(sources) if sources is not None else set()
    if sources is None:
        for m in ordered:
            all_sources.update(m.contributing_sources)

    notes: List[str] = []
    for m in ordered:
        for n in m.notes:
            if n not in notes:
                notes.append(n)

    return replace(
        lead,
        location=_merged_location(ordered),
        description=_distinct_descriptions(ordered),
        confidence=confidence,
        contributing_sources=frozenset(all_sources),
        notes=tuple(notes),
    )


def dedup_findings(findings: Sequence[Finding], *, tolerance: int = DEFAULT_TOLERANCE) -> List[Finding]:
    """Merge findings of one run that describe the same issue."""
    merged = [merge_group(c) for c in cluster_findings(list(findings), tolerance=tolerance)]
    merged.sort(key=lambda f: f.sort_key())
    return merged
