import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from engines.core_cmd import run_cmd
from review_bench.domain import ProvisioningError
from review_pipeline.isolation import TempDirProvider, WorktreeProvider, safe_name


class TestTempDirProvider(unittest.TestCase):
    def test_live_contexts_never_share_storage_or_state(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            provider = TempDirProvider(base_dir=Path(td))
            a = provider.acquire("opus")
            b = provider.acquire("opus")

            self.assertNotEqual(a.context_id, b.context_id)
            self.assertNotEqual(a.storage_handle, b.storage_handle)
            self.assertNotEqual(a.state_namespace, b.state_namespace)
            self.assertNotEqual(a.state_dir, b.state_dir)

            (a.storage_handle / "marker.txt").write_text("a", encoding="utf-8")
            (a.state_dir / "session.json").write_text("{}", encoding="utf-8")
            self.assertFalse((b.storage_handle / "marker.txt").exists())
            self.assertFalse((b.state_dir / "session.json").exists())

            provider.release(a)
            provider.release(b)

    def test_concurrent_acquire_yields_unique_contexts(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            provider = TempDirProvider(base_dir=Path(td))
            contexts = []
            lock = threading.Lock()

            def _acquire(i: int) -> None:
                ctx = provider.acquire(f"run-{i % 3}")
                with lock:
                    contexts.append(ctx)

            threads = [threading.Thread(target=_acquire, args=(i,)) for i in range(24)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            self.assertEqual(24, len(contexts))
            self.assertEqual(24, len({c.context_id for c in contexts}))
            self.assertEqual(24, len({c.storage_handle for c in contexts}))
            self.assertEqual(24, len(provider.live_contexts()))

            for c in contexts:
                provider.release(c)
            self.assertEqual([], provider.live_contexts())

    def test_release_is_idempotent_and_removes_storage(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            provider = TempDirProvider(base_dir=Path(td))
            ctx = provider.acquire("opus")
            root = ctx.storage_handle.parent

            provider.release(ctx)
            self.assertFalse(root.exists())

            with self.assertLogs("review_pipeline.isolation", level="INFO") as logs:
                provider.release(ctx)
            self.assertTrue(any("already released" in m for m in logs.output))

    def test_unusable_base_dir_raises_provisioning_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            blocker = Path(td) / "not-a-dir"
            blocker.write_text("x", encoding="utf-8")
            provider = TempDirProvider(base_dir=blocker)
            with self.assertRaises(ProvisioningError):
                provider.acquire("opus")
            self.assertEqual([], provider.live_contexts())

    def test_seeded_copy_skips_vcs_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            seed = Path(td) / "repo"
            (seed / "src").mkdir(parents=True)
            (seed / "src" / "lib.rs").write_text("fn main() {}\n", encoding="utf-8")
            (seed / ".git").mkdir()
            (seed / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")

            provider = TempDirProvider(base_dir=Path(td) / "contexts", seed_from=seed)
            ctx = provider.acquire("opus")
            self.assertTrue((ctx.storage_handle / "src" / "lib.rs").exists())
            self.assertFalse((ctx.storage_handle / ".git").exists())

            # Writes in the copy never reach the seed.
            (ctx.storage_handle / "src" / "lib.rs").write_text("changed\n", encoding="utf-8")
            self.assertEqual("fn main() {}\n", (seed / "src" / "lib.rs").read_text(encoding="utf-8"))
            provider.release(ctx)

    def test_missing_seed_fails_without_leftovers(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            base = Path(td) / "contexts"
            provider = TempDirProvider(base_dir=base, seed_from=Path(td) / "missing")
            with self.assertRaises(ProvisioningError):
                provider.acquire("opus")
            self.assertEqual([], list(base.iterdir()))

    def test_close_removes_owned_scratch_dir(self) -> None:
        provider = TempDirProvider()
        ctx = provider.acquire("opus")
        base = provider.base_dir
        provider.release(ctx)
        provider.close()
        self.assertFalse(base.exists())

    def test_safe_name(self) -> None:
        self.assertEqual("claude-opus-4", safe_name("claude opus/4"))
        self.assertEqual("run", safe_name("///"))


def _git(repo: Path, *argv: str) -> None:
    res = run_cmd(
        ["git", "-c", "user.name=test", "-c", "user.email=test@example.com", "-C", str(repo), *argv],
        timeout_seconds=60,
    )
    if res.exit_code != 0:
        raise RuntimeError(res.stderr)


@unittest.skipUnless(shutil.which("git"), "git not installed")
class TestWorktreeProvider(unittest.TestCase):
    def test_each_context_is_its_own_worktree(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            repo = Path(td) / "repo"
            repo.mkdir()
            _git(repo, "init", "-q")
            (repo / "README.md").write_text("hello\n", encoding="utf-8")
            _git(repo, "add", "README.md")
            _git(repo, "commit", "-q", "-m", "init")

            provider = WorktreeProvider(repo, base_dir=Path(td) / "contexts")
            a = provider.acquire("opus")
            b = provider.acquire("sonnet")

            self.assertTrue((a.storage_handle / "README.md").exists())
            self.assertTrue((b.storage_handle / "README.md").exists())
            (a.storage_handle / "README.md").write_text("changed\n", encoding="utf-8")
            self.assertEqual("hello\n", (b.storage_handle / "README.md").read_text(encoding="utf-8"))

            provider.release(a)
            provider.release(b)
            self.assertFalse(a.storage_handle.exists())
            self.assertFalse(b.storage_handle.exists())

    def test_bad_ref_raises_provisioning_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            repo = Path(td) / "repo"
            repo.mkdir()
            _git(repo, "init", "-q")
            provider = WorktreeProvider(repo, base_dir=Path(td) / "contexts", ref="no-such-ref")
            with self.assertRaises(ProvisioningError):
                provider.acquire("opus")


if __name__ == "__main__":
    unittest.main()
