import unittest

from review_bench.domain import Confidence, Finding, Location, Severity, category_class


class TestSeverityParsing(unittest.TestCase):
    def test_parses_canonical_and_decorated_labels(self) -> None:
        self.assertIs(Severity.HIGH, Severity.parse("High"))
        self.assertIs(Severity.HIGH, Severity.parse("**HIGH**"))
        self.assertIs(Severity.CRITICAL, Severity.parse("critical (data loss)"))
        self.assertIs(Severity.MEDIUM, Severity.parse("moderate"))
        self.assertIs(Severity.LOW, Severity.parse("P3"))

    def test_unknown_severity_is_none(self) -> None:
        self.assertIsNone(Severity.parse("urgent-ish"))
        self.assertIsNone(Severity.parse(None))
        self.assertIsNone(Severity.parse(""))

    def test_rank_orders_severities(self) -> None:
        ranked = sorted(Severity, key=lambda s: s.rank, reverse=True)
        self.assertEqual([Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW], ranked)


class TestConfidenceParsing(unittest.TestCase):
    def test_prefix_and_alias(self) -> None:
        self.assertIs(Confidence.DEFINITE, Confidence.parse("Definitely"))
        self.assertIs(Confidence.POTENTIAL, Confidence.parse("possible"))
        self.assertIs(Confidence.STYLISTIC, Confidence.parse("nit"))
        self.assertIsNone(Confidence.parse("???"))


class TestCategoryClass(unittest.TestCase):
    def test_folds_free_form_categories(self) -> None:
        self.assertEqual("error-handling", category_class("Error Handling"))
        self.assertEqual("error-handling", category_class("unwrap on user input"))
        self.assertEqual("defects", category_class("Logic bug"))
        self.assertEqual("test-coverage", category_class("Missing tests"))
        self.assertEqual("type-design", category_class("type_design"))

    def test_unknown_category_keeps_its_slug(self) -> None:
        self.assertEqual("performance", category_class("Performance"))
        self.assertEqual("uncategorized", category_class(""))


class TestLocationAndFinding(unittest.TestCase):
    def test_location_describe(self) -> None:
        self.assertEqual("unlocated", Location().describe())
        self.assertEqual("src/a.rs", Location("src/a.rs").describe())
        self.assertEqual("src/a.rs:4", Location("src/a.rs", 4).describe())
        self.assertEqual("src/a.rs:4-9", Location("src/a.rs", 4, 9).describe())

    def test_finding_dict_conversion(self) -> None:
        f = Finding(
            location=Location("src/a.rs", 4),
            severity=Severity.HIGH,
            category="Error handling",
            description="unwrap on user input",
            confidence=Confidence.DEFINITE,
            contributing_sources=frozenset({"opus", "sonnet"}),
        )
        d = f.to_dict()
        self.assertEqual("error-handling", d["category_class"])
        self.assertEqual(["opus", "sonnet"], d["contributing_sources"])
        self.assertEqual(f, Finding.from_dict(d))

    def test_from_dict_rejects_unknown_severity(self) -> None:
        with self.assertRaises(ValueError):
            Finding.from_dict({"severity": "meh", "description": "x"})


if __name__ == "__main__":
    unittest.main()
