"""review_pipeline.record

Write a finished comparison session to disk.

Layout (see :mod:`review_bench.io.run_dir`)::

    results/<session_id>/
        <source>.json        one report per run
        <source>.err         terminal error, failed runs only
        comparison.json      absent when every run failed
        comparison.md
        manifest.json        config + run statuses

All writes are atomic so a partially written session never looks complete.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from review_bench.domain import ComparisonResult, Finding, RunReport
from review_bench.io import create_results_dir, write_json_atomic, write_text_atomic

from .config import ReviewConfig
from .core import now_iso
from .isolation import safe_name


def _finding_line(f: Finding) -> str:
    desc = f.description.replace("\n", " / ")
    return f"- **{f.severity.value}** `{f.location.describe()}` ({f.category_class}, {f.confidence.value}): {desc}"


def render_comparison_md(comparison: ComparisonResult, reports: Mapping[str, RunReport]) -> str:
    """Small markdown rendering of a comparison, for humans."""
    lines: List[str] = ["# Review comparison", ""]

    lines += ["## Runs", "", "| source | status | findings | failed dimensions |", "|---|---|---|---|"]
    for label, r in reports.items():
        failed = ", ".join(sorted(r.dimension_errors)) or "-"
        lines.append(f"| {label} | {r.status.value} | {len(r.findings)} | {failed} |")
    lines.append("")

    lines += [f"## Found by multiple sources ({len(comparison.overlapping)})", ""]
    for f in comparison.overlapping:
        lines.append(_finding_line(f) + f" [{', '.join(sorted(f.contributing_sources))}]")
    lines.append("")

    for label, findings in comparison.unique_to.items():
        lines += [f"## Only {label} ({len(findings)})", ""]
        lines += [_finding_line(f) for f in findings]
        lines.append("")

    if comparison.severity_disagreements:
        lines += ["## Severity disagreements", ""]
        for d in comparison.severity_disagreements:
            ratings = ", ".join(f"{k}: {v.value}" for k, v in sorted(d.ratings.items()))
            if d.needs_review:
                verdict = f"needs review ({d.error})"
            else:
                verdict = f"{d.resolved.value} (by {d.resolved_by})"
            lines.append(f"- `{d.finding.location.describe()}` {ratings} -> {verdict}")
        lines.append("")

    return "\n".join(lines)


def write_session(
    config: ReviewConfig,
    reports: Mapping[str, RunReport],
    comparison: Optional[ComparisonResult],
    *,
    error: Optional[str] = None,
) -> Path:
    """Persist reports and comparison into a fresh results directory. Returns it."""
    session_id, out_dir = create_results_dir(config.output_root)

    runs: Dict[str, Any] = {}
    for label, r in reports.items():
        name = safe_name(label)
        write_json_atomic(out_dir / f"{name}.json", r.to_dict())
        if r.error:
            write_text_atomic(out_dir / f"{name}.err", r.error + "\n")
        runs[label] = {
            "file": f"{name}.json",
            "status": r.status.value,
            "findings": len(r.findings),
            "error": r.error,
        }

    if comparison is not None:
        write_json_atomic(out_dir / "comparison.json", comparison.to_dict())
        write_text_atomic(out_dir / "comparison.md", render_comparison_md(comparison, reports))
    elif error:
        write_text_atomic(out_dir / "comparison.md", f"# Review comparison\n\nNo comparison: {error}\n")

    manifest = {
        "session_id": session_id,
        "written_at": now_iso(),
        "config": config.to_dict(),
        "runs": runs,
        "comparison": comparison.summary() if comparison is not None else None,
        "error": error,
    }
    write_json_atomic(out_dir / "manifest.json", manifest)
    return out_dir
