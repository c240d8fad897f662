import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from engines import CommandEngine, FocusDirective, HttpEngine, StubEngine
from review_bench.domain import EngineError, EngineErrorKind, IsolationContext


def _context(root: Path, label: str = "opus") -> IsolationContext:
    state = root / "state"
    state.mkdir(exist_ok=True)
    return IsolationContext(
        context_id=f"{label}-0001",
        label=label,
        storage_handle=root,
        state_namespace=f"{label}-0001",
        state_dir=state,
    )


DIRECTIVE = FocusDirective(focus="defects", prompt="Look for bugs.")


class TestCommandEngine(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.ctx = _context(Path(self._td.name))

    def tearDown(self) -> None:
        self._td.cleanup()

    def _engine(self, code: str, *extra: str) -> CommandEngine:
        return CommandEngine([sys.executable, "-c", code, *extra])

    def test_returns_stdout_and_substitutes_placeholders(self) -> None:
        engine = self._engine("import sys; print(sys.argv[1], sys.argv[2])", "{focus}", "{label}")
        self.assertEqual("defects opus", engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=30).strip())

    def test_runs_inside_the_context_with_its_state_namespace(self) -> None:
        engine = self._engine("import os; print(os.getcwd()); print(os.environ['REVIEW_STATE_NAMESPACE'])")
        cwd, namespace = engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=30).strip().splitlines()
        self.assertEqual(self.ctx.storage_handle.resolve(), Path(cwd).resolve())
        self.assertEqual("opus-0001", namespace)

    def test_nested_session_marker_is_unset(self) -> None:
        engine = self._engine("import os; print(os.environ.get('CLAUDECODE', 'unset'))")
        with mock.patch.dict(os.environ, {"CLAUDECODE": "1"}):
            out = engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=30)
        self.assertEqual("unset", out.strip())

    def test_model_mapping(self) -> None:
        engine = CommandEngine(["claude", "--model", "{label}", "{prompt}"], models={"opus": "claude-opus-4"})
        cmd = engine.build_command(self.ctx, "src/", DIRECTIVE)
        self.assertEqual(["claude", "--model", "claude-opus-4"], cmd[:3])
        self.assertIn("Look for bugs.", cmd[3])
        self.assertIn("Scope: src/", cmd[3])

    def test_nonzero_exit_is_crash(self) -> None:
        engine = self._engine("import sys; sys.stderr.write('boom'); sys.exit(3)")
        with self.assertRaises(EngineError) as cm:
            engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=30)
        self.assertIs(EngineErrorKind.CRASH, cm.exception.kind)
        self.assertIn("boom", cm.exception.message)
        self.assertEqual("defects", cm.exception.focus)

    def test_empty_output_is_malformed(self) -> None:
        with self.assertRaises(EngineError) as cm:
            self._engine("pass").invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=30)
        self.assertIs(EngineErrorKind.MALFORMED_OUTPUT, cm.exception.kind)

    def test_overrun_is_timeout(self) -> None:
        with self.assertRaises(EngineError) as cm:
            self._engine("import time; time.sleep(10)").invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=0.5)
        self.assertIs(EngineErrorKind.TIMEOUT, cm.exception.kind)

    def test_missing_binary_is_crash(self) -> None:
        engine = CommandEngine(["definitely-not-an-installed-engine-xyz", "{prompt}"])
        with self.assertRaises(EngineError) as cm:
            engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=5)
        self.assertIs(EngineErrorKind.CRASH, cm.exception.kind)


def _response(*, json_body=None, text="", content_type="application/json"):
    resp = mock.Mock()
    resp.headers = {"Content-Type": content_type}
    resp.text = text
    resp.raise_for_status.return_value = None
    if isinstance(json_body, Exception):
        resp.json.side_effect = json_body
    else:
        resp.json.return_value = json_body
    return resp


class TestHttpEngine(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.ctx = _context(Path(self._td.name))
        self.session = mock.Mock()

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_posts_invocation_and_reads_text(self) -> None:
        self.session.post.return_value = _response(json_body={"text": "No findings."})
        engine = HttpEngine("https://review.example/api", token_env="REVIEW_TOKEN", session=self.session)

        with mock.patch.dict(os.environ, {"REVIEW_TOKEN": "s3cret"}):
            out = engine.invoke(self.ctx, "src/", DIRECTIVE, timeout_seconds=12)

        self.assertEqual("No findings.", out)
        _, kwargs = self.session.post.call_args
        self.assertEqual("defects", kwargs["json"]["focus"])
        self.assertEqual("opus-0001", kwargs["json"]["context_id"])
        self.assertEqual("Bearer s3cret", kwargs["headers"]["Authorization"])
        self.assertEqual(12, kwargs["timeout"])

    def test_plain_text_body(self) -> None:
        self.session.post.return_value = _response(text="Location: a.py:1", content_type="text/plain")
        engine = HttpEngine("https://review.example/api", session=self.session)
        self.assertEqual("Location: a.py:1", engine.invoke(self.ctx, "src/", DIRECTIVE))

    def test_transport_errors_are_classified(self) -> None:
        engine = HttpEngine("https://review.example/api", session=self.session)

        self.session.post.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(EngineError) as cm:
            engine.invoke(self.ctx, "src/", DIRECTIVE)
        self.assertIs(EngineErrorKind.TIMEOUT, cm.exception.kind)

        self.session.post.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(EngineError) as cm:
            engine.invoke(self.ctx, "src/", DIRECTIVE)
        self.assertIs(EngineErrorKind.CRASH, cm.exception.kind)

    def test_unusable_bodies_are_malformed(self) -> None:
        engine = HttpEngine("https://review.example/api", session=self.session)
        for resp in (
            _response(json_body={"result": 1}),
            _response(json_body=ValueError("bad json")),
            _response(text="   ", content_type="text/plain"),
        ):
            self.session.post.return_value = resp
            with self.assertRaises(EngineError) as cm:
                engine.invoke(self.ctx, "src/", DIRECTIVE)
            self.assertIs(EngineErrorKind.MALFORMED_OUTPUT, cm.exception.kind)


class TestStubEngine(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.ctx = _context(Path(self._td.name))

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_lookup_precedence(self) -> None:
        engine = StubEngine({("opus", "defects"): "specific", "defects": "focus", "opus": "label"}, default="default")
        self.assertEqual("specific", engine.invoke(self.ctx, "s", DIRECTIVE))
        self.assertEqual("label", engine.invoke(self.ctx, "s", FocusDirective("architecture", "p")))
        other = _context(Path(self._td.name), label="sonnet")
        self.assertEqual("focus", engine.invoke(other, "s", DIRECTIVE))
        self.assertEqual("default", engine.invoke(other, "s", FocusDirective("architecture", "p")))

    def test_exceptions_and_callables(self) -> None:
        engine = StubEngine(
            {
                "defects": EngineError(EngineErrorKind.CRASH, "boom"),
                "architecture": lambda ctx, scope, d: f"{ctx.label}:{scope}:{d.focus}",
            }
        )
        with self.assertRaises(EngineError):
            engine.invoke(self.ctx, "src/", DIRECTIVE)
        self.assertEqual("opus:src/:architecture", engine.invoke(self.ctx, "src/", FocusDirective("architecture", "p")))
        self.assertEqual(2, len(engine.calls))


if __name__ == "__main__":
    unittest.main()
