import json
import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from review_bench.domain import Finding, Location, RunReport, RunState, RunStatus, Severity
from review_bench.io import create_results_dir, write_json_atomic
from review_pipeline.compare import compare
from review_pipeline.config import ReviewConfig
from review_pipeline.record import render_comparison_md, write_session


def _read_json(path):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _report(label, *findings, status=RunStatus.SUCCEEDED, error=None, dimension_errors=None):
    return RunReport(
        run_id=f"{label}-1",
        source_label=label,
        findings=tuple(findings),
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:01:00+00:00",
        status=status,
        state=RunState.FAILED if status is RunStatus.FAILED else RunState.COMPLETED,
        error=error,
        dimension_errors=dimension_errors or {},
    )


FINDING = Finding(Location("src/a.rs", 10), Severity.HIGH, "defects", "off by one", contributing_sources=frozenset({"defects"}))


class TestResultsDir(unittest.TestCase):
    def test_same_second_gets_a_suffix(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
            first, p1 = create_results_dir(Path(td), now=now)
            second, p2 = create_results_dir(Path(td), now=now)
        self.assertEqual("20260301-120000", first)
        self.assertEqual("20260301-120000-01", second)
        self.assertNotEqual(p1, p2)

    def test_relative_root_is_anchored_under_the_working_directory(self) -> None:
        prev = os.getcwd()
        with tempfile.TemporaryDirectory() as td:
            os.chdir(td)
            try:
                _, path = create_results_dir("results")
            finally:
                os.chdir(prev)
            self.assertEqual((Path(td) / "results").resolve(), path.parent.resolve())
            self.assertTrue(path.is_dir())

    def test_json_write_is_atomic_and_cleans_temp(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            out = Path(td) / "out" / "state.json"
            payload = {"b": [1, 2], "a": None}
            write_json_atomic(out, payload)
            self.assertEqual(payload, _read_json(out))
            self.assertEqual([], list(out.parent.glob("*.tmp")))
            self.assertTrue(out.read_text(encoding="utf-8").endswith("\n"))


class TestWriteSession(unittest.TestCase):
    def test_writes_reports_errors_comparison_and_manifest(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = ReviewConfig(scope="src/", sources=("opus", "sonnet"), output_root=Path(td))
            reports = {
                "opus": _report("opus", FINDING, status=RunStatus.PARTIAL, dimension_errors={"comment-accuracy": "Crash"}),
                "sonnet": _report("sonnet", status=RunStatus.FAILED, error="ProvisioningError: no disk"),
            }
            comparison = compare(list(reports.values()))
            out = write_session(cfg, reports, comparison)

            self.assertEqual(Path(td), out.parent)
            self.assertTrue((out / "opus.json").exists())
            self.assertFalse((out / "opus.err").exists())
            self.assertEqual("ProvisioningError: no disk\n", (out / "sonnet.err").read_text(encoding="utf-8"))

            cmp_doc = _read_json(out / "comparison.json")
            self.assertEqual(1, cmp_doc["summary"]["unique_to"]["opus"])

            manifest = _read_json(out / "manifest.json")
            self.assertEqual(out.name, manifest["session_id"])
            self.assertEqual("Failed", manifest["runs"]["sonnet"]["status"])
            self.assertEqual("sonnet", manifest["config"]["arbitrator"])

            md = (out / "comparison.md").read_text(encoding="utf-8")
            self.assertIn("## Only opus (1)", md)
            self.assertIn("comment-accuracy", md)

    def test_all_failed_session_has_no_comparison_document(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = ReviewConfig(scope="src/", sources=("opus",), output_root=Path(td))
            reports = {"opus": _report("opus", status=RunStatus.FAILED, error="Crash")}
            out = write_session(cfg, reports, None, error="all 1 run(s) failed")

            self.assertFalse((out / "comparison.json").exists())
            self.assertIn("No comparison", (out / "comparison.md").read_text(encoding="utf-8"))
            self.assertEqual("all 1 run(s) failed", _read_json(out / "manifest.json")["error"])

    def test_markdown_lists_disagreements(self) -> None:
        class _Z:
            arbitrator_id = "Z"

            def arbitrate(self, finding, ratings):
                return Severity.HIGH

        low = Finding(Location("src/a.rs", 10), Severity.LOW, "defects", "off by one", contributing_sources=frozenset({"defects"}))
        reports = {"X": _report("X", low), "Y": _report("Y", FINDING)}
        md = render_comparison_md(compare(list(reports.values()), arbitrator=_Z()), reports)
        self.assertIn("## Severity disagreements", md)
        self.assertIn("High (by Z)", md)


if __name__ == "__main__":
    unittest.main()
