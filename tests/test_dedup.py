import unittest

from review_bench.domain import Confidence, Finding, Location, Severity
from review_pipeline.dedup import cluster_findings, dedup_findings, merge_group


def _f(
    unit,
    line,
    severity=Severity.MEDIUM,
    category="defects",
    description="off by one",
    source="defects",
    confidence=Confidence.LIKELY,
    end=None,
) -> Finding:
    return Finding(
        location=Location(unit, line, end),
        severity=severity,
        category=category,
        description=description,
        confidence=confidence,
        contributing_sources=frozenset({source}),
    )


class TestDedupFindings(unittest.TestCase):
    def test_nearby_findings_of_same_class_merge(self) -> None:
        a = _f("src/a.rs", 10, description="loop bound is off by one", confidence=Confidence.POTENTIAL)
        b = _f("src/a.rs", 12, description="last element skipped", source="architecture", category="logic bug")
        (merged,) = dedup_findings([a, b], tolerance=3)

        self.assertEqual(Location("src/a.rs", 10, 12), merged.location)
        self.assertEqual(frozenset({"defects", "architecture"}), merged.contributing_sources)
        self.assertEqual("loop bound is off by one\nlast element skipped", merged.description)
        self.assertIs(Confidence.LIKELY, merged.confidence)

    def test_distant_lines_or_other_class_stay_separate(self) -> None:
        a = _f("src/a.rs", 10)
        b = _f("src/a.rs", 20)
        c = _f("src/a.rs", 10, category="Error handling", source="error-handling")
        d = _f("src/b.rs", 10)
        self.assertEqual(4, len(dedup_findings([a, b, c, d], tolerance=3)))

    def test_specialist_severity_wins_over_incidental_mention(self) -> None:
        specialist = _f("src/a.rs", 10, severity=Severity.MEDIUM, source="defects")
        incidental = _f("src/a.rs", 11, severity=Severity.HIGH, source="error-handling", category="bug")
        (merged,) = dedup_findings([incidental, specialist])
        self.assertIs(Severity.MEDIUM, merged.severity)

    def test_highest_severity_wins_between_equal_sources(self) -> None:
        a = _f("src/a.rs", 10, severity=Severity.LOW, source="defects")
        b = _f("src/a.rs", 10, severity=Severity.CRITICAL, source="defects", description="crash")
        (merged,) = dedup_findings([a, b])
        self.assertIs(Severity.CRITICAL, merged.severity)

    def test_unlocated_findings_merge_only_on_exact_description(self) -> None:
        a = Finding(Location(), Severity.LOW, "defects", "global state", contributing_sources=frozenset({"defects"}))
        b = Finding(Location(), Severity.HIGH, "defects", "global state", contributing_sources=frozenset({"architecture"}))
        c = Finding(Location(), Severity.LOW, "defects", "global state is mutable", contributing_sources=frozenset({"defects"}))
        out = dedup_findings([a, b, c])
        self.assertEqual(2, len(out))
        merged = [f for f in out if f.description == "global state"][0]
        self.assertEqual(frozenset({"defects", "architecture"}), merged.contributing_sources)

    def test_unit_level_findings_merge_per_unit_and_class(self) -> None:
        a = _f("src/a.rs", None, description="module does too much", category="architecture", source="architecture")
        b = _f("src/a.rs", None, description="god module", category="architecture", source="type-design")
        (merged,) = dedup_findings([a, b])
        self.assertIsNone(merged.location.position)

    def test_merge_is_idempotent(self) -> None:
        findings = [
            _f("src/a.rs", 10),
            _f("src/a.rs", 12, severity=Severity.HIGH, description="second"),
            _f("src/a.rs", 15, end=18, description="third"),
            _f("src/a.rs", 40),
            _f("src/b.rs", 1, category="comment", source="comment-accuracy"),
            _f("src/b.rs", None, category="architecture", source="architecture"),
            Finding(Location(), Severity.LOW, "defects", "unlocated", contributing_sources=frozenset({"defects"})),
        ]
        once = dedup_findings(findings)
        self.assertEqual(once, dedup_findings(once))

    def test_zero_tolerance_needs_overlap(self) -> None:
        a = _f("src/a.rs", 10, end=12)
        b = _f("src/a.rs", 12)
        c = _f("src/a.rs", 13)
        self.assertEqual(2, len(dedup_findings([a, b, c], tolerance=0)))


class TestClusterAndMerge(unittest.TestCase):
    def test_cluster_wrapped_items(self) -> None:
        pairs = [("x", _f("src/a.rs", 10)), ("y", _f("src/a.rs", 11)), ("x", _f("src/a.rs", 30))]
        clusters = cluster_findings(pairs, tolerance=3, finding_of=lambda p: p[1])
        self.assertEqual([["x", "y"], ["x"]], [[label for label, _ in c] for c in clusters])

    def test_single_member_is_returned_unchanged(self) -> None:
        a = _f("src/a.rs", 10)
        self.assertIs(a, merge_group([a]))

    def test_sources_override(self) -> None:
        merged = merge_group([_f("src/a.rs", 10), _f("src/a.rs", 11)], sources=["opus", "sonnet"])
        self.assertEqual(frozenset({"opus", "sonnet"}), merged.contributing_sources)

    def test_empty_group_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            merge_group([])


if __name__ == "__main__":
    unittest.main()
