from __future__ import annotations

from typing import Mapping

from review_bench.domain import ComparisonResult, RunReport, RunStatus

_STATUS_ICON = {
    RunStatus.SUCCEEDED: "✅",
    RunStatus.PARTIAL: "⚠️ ",
    RunStatus.FAILED: "❌",
}


def print_runs(reports: Mapping[str, RunReport]) -> None:
    print("\n📋 Runs")
    for label, r in reports.items():
        icon = _STATUS_ICON.get(r.status, "")
        print(f"  {icon} {label:<16} {r.status.value:<10} {len(r.findings):>4} finding(s)")
        for focus, err in sorted(r.dimension_errors.items()):
            print(f"      - {focus}: {err}")
        if r.error:
            print(f"      error: {r.error}")


def print_comparison(comparison: ComparisonResult) -> None:
    s = comparison.summary()
    print("\n🔎 Comparison")
    print(f"  Sources     : {', '.join(s['sources'])}")
    print(f"  Overlapping : {s['overlapping']}")
    for label, n in s["unique_to"].items():
        print(f"  Only {label:<7}: {n}")
    print(f"  Severity disagreements : {s['severity_disagreements']} ({s['unresolved']} need review)")

    for d in comparison.severity_disagreements:
        ratings = ", ".join(f"{k}={v.value}" for k, v in sorted(d.ratings.items()))
        where = d.finding.location.describe()
        if d.needs_review:
            print(f"    ? {where}: {ratings} -> needs review ({d.error})")
        else:
            print(f"    - {where}: {ratings} -> {d.resolved.value} (by {d.resolved_by})")
