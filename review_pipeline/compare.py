"""review_pipeline.compare

Cross-run comparison.

Findings from different runs are matched with the same key the intra-run
deduplicator uses: ``(unit, category class)`` plus line tolerance (see
:func:`review_pipeline.dedup.cluster_findings`).

- matched in two or more runs -> one *overlapping* record whose
  ``contributing_sources`` are the run labels
- matched in exactly one run -> *unique to* that run
- runs rated an overlapping issue differently -> a severity disagreement,
  resolved by the arbitrator when one is configured

The result depends only on the set of reports, not on their order.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from review_bench.domain import (
    AllRunsFailedError,
    ArbitrationError,
    ComparisonResult,
    Finding,
    RunReport,
    Severity,
    SeverityDisagreement,
)

from .arbitration import Arbitrator
from .dedup import DEFAULT_TOLERANCE, cluster_findings, merge_group

logger = logging.getLogger(__name__)

_Pair = Tuple[str, Finding]


def _ratings(cluster: Sequence[_Pair]) -> Dict[str, Severity]:
    """Highest severity each run gave the issue."""
    out: Dict[str, Severity] = {}
    for label, f in cluster:
        cur = out.get(label)
        if cur is None or f.severity.rank > cur.rank:
            out[label] = f.severity
    return out


def _resolve(
    finding: Finding,
    ratings: Mapping[str, Severity],
    arbitrator: Optional[Arbitrator],
) -> SeverityDisagreement:
    if arbitrator is None:
        logger.warning("unresolved severity disagreement at %s: no arbitrator configured", finding.location.describe())
        return SeverityDisagreement(
            finding=finding,
            ratings=dict(ratings),
            needs_review=True,
            error="no arbitrator configured",
        )
    try:
        chosen = arbitrator.arbitrate(finding, ratings)
    except Exception as e:
        reason = str(e) if isinstance(e, ArbitrationError) else f"{type(e).__name__}: {e}"
        logger.warning("unresolved severity disagreement at %s: %s", finding.location.describe(), reason)
        return SeverityDisagreement(
            finding=finding,
            ratings=dict(ratings),
            needs_review=True,
            error=reason,
        )

    for label, sev in sorted(ratings.items()):
        if sev is not chosen:
            logger.info(
                "arbitration: %s overrode %s's %s rating with %s at %s",
                arbitrator.arbitrator_id,
                label,
                sev.value,
                chosen.value,
                finding.location.describe(),
            )
    return SeverityDisagreement(
        finding=replace(finding, severity=chosen),
        ratings=dict(ratings),
        resolved=chosen,
        resolved_by=arbitrator.arbitrator_id,
    )


def compare(
    reports: Sequence[RunReport],
    *,
    arbitrator: Optional[Arbitrator] = None,
    tolerance: int = DEFAULT_TOLERANCE,
) -> ComparisonResult:
    """Compare findings across runs.

    Failed runs are left out. Raises :class:`AllRunsFailedError` when no run
    is left to compare.
    """
    usable = [r for r in reports if r.ok]
    if not usable:
        raise AllRunsFailedError({r.source_label: r.error or r.status.value for r in reports})

    labels = sorted({r.source_label for r in usable})
    pairs: List[_Pair] = [(r.source_label, f) for r in usable for f in r.findings]

    overlapping: List[Finding] = []
    disagreements: List[SeverityDisagreement] = []
    unique: Dict[str, List[Finding]] = {label: [] for label in labels}

    for cluster in cluster_findings(pairs, tolerance=tolerance, finding_of=lambda p: p[1]):
        runs = sorted({label for label, _ in cluster})
        members = [f for _, f in cluster]
        if len(runs) == 1:
            unique[runs[0]].append(merge_group(members))
            continue

        merged = merge_group(members, sources=runs)
        ratings = _ratings(cluster)
        if len(set(ratings.values())) > 1:
            d = _resolve(merged, ratings, arbitrator)
            disagreements.append(d)
            if d.resolved is not None:
                merged = replace(merged, severity=d.resolved)
            else:
                merged = replace(merged, severity=max(ratings.values(), key=lambda s: s.rank))
        overlapping.append(merged)

    overlapping.sort(key=lambda f: f.sort_key())
    disagreements.sort(key=lambda d: d.finding.sort_key())
    return ComparisonResult(
        overlapping=tuple(overlapping),
        unique_to={label: tuple(sorted(unique[label], key=lambda f: f.sort_key())) for label in labels},
        severity_disagreements=tuple(disagreements),
        sources=tuple(labels),
    )
