"""review_pipeline.isolation

Isolation context providers.

Every concurrent run gets its own :class:`~review_bench.domain.IsolationContext`:
a private working copy (``storage_handle``) plus a private state namespace
(``state_dir``). Two contexts that are live at the same time never share
either, so nothing one run writes is visible to another.

Contract
--------
- ``acquire(label)`` returns a context unique among all live contexts; it is
  safe to call from many threads at once.
- ``acquire`` raises :class:`ProvisioningError` if storage cannot be created.
  That aborts the requesting run only.
- ``release(context)`` is idempotent and never raises. Problems are logged.

Providers
---------
- :class:`TempDirProvider` - a fresh directory tree per context, optionally
  seeded with a copy of a source tree.
- :class:`WorktreeProvider` - one detached ``git worktree`` per context.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from engines.core_cmd import run_cmd
from review_bench.domain import IsolationContext, ProvisioningError

logger = logging.getLogger(__name__)

_SAFE_RE = re.compile(r"[^A-Za-z0-9_.-]+")

# Never copied into a seeded working copy.
_SEED_IGNORE = shutil.ignore_patterns(".git", "target", "node_modules", "__pycache__", ".venv")


def safe_name(label: str) -> str:
    s = _SAFE_RE.sub("-", str(label or "").strip()).strip("-.")
    return s or "run"


class IsolationProvider:
    """Shared bookkeeping for providers.

    Subclasses implement ``_provision`` (create storage for a new context id)
    and ``_teardown`` (destroy it).
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._owns_base_dir = base_dir is None
        self._lock = threading.Lock()
        self._live: Dict[str, IsolationContext] = {}

    @property
    def base_dir(self) -> Path:
        with self._lock:
            if self._base_dir is None:
                self._base_dir = Path(tempfile.mkdtemp(prefix="review-contexts-"))
            return self._base_dir

    def live_contexts(self) -> List[IsolationContext]:
        with self._lock:
            return list(self._live.values())

    def acquire(self, label: str) -> IsolationContext:
        context_id = f"{safe_name(label)}-{uuid.uuid4().hex[:12]}"
        try:
            root = self.base_dir / context_id
            # exist_ok=False: a collision must fail loudly, never share a tree.
            root.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise ProvisioningError(f"cannot provision context for '{label}': {e}") from e

        try:
            (root / "state").mkdir()
            storage = self._provision(root, label)
        except (OSError, ProvisioningError) as e:
            shutil.rmtree(root, ignore_errors=True)
            if isinstance(e, ProvisioningError):
                raise
            raise ProvisioningError(f"cannot provision context for '{label}': {e}") from e

        ctx = IsolationContext(
            context_id=context_id,
            label=str(label),
            storage_handle=storage,
            state_namespace=context_id,
            state_dir=root / "state",
        )
        with self._lock:
            self._live[context_id] = ctx
        logger.debug("acquired isolation context %s at %s", context_id, storage)
        return ctx

    def release(self, context: IsolationContext) -> None:
        with self._lock:
            live = self._live.pop(context.context_id, None)
        if live is None:
            logger.info("isolation context %s already released", context.context_id)
            return
        try:
            self._teardown(live)
        except OSError as e:
            logger.warning("releasing isolation context %s failed: %s", context.context_id, e)
        root = self.base_dir / live.context_id
        shutil.rmtree(root, ignore_errors=True)
        if root.exists():
            logger.warning("isolation context %s left files behind at %s", live.context_id, root)

    def close(self) -> None:
        """Remove the provider's own scratch directory once no context is live."""
        with self._lock:
            if self._live:
                logger.warning("provider closed with %d live context(s); keeping %s", len(self._live), self._base_dir)
                return
            base, self._base_dir = self._base_dir, (None if self._owns_base_dir else self._base_dir)
        if base is not None and self._owns_base_dir:
            shutil.rmtree(base, ignore_errors=True)

    def _provision(self, root: Path, label: str) -> Path:
        raise NotImplementedError

    def _teardown(self, context: IsolationContext) -> None:
        return None


class TempDirProvider(IsolationProvider):
    """Private directory per context, optionally seeded from *seed_from*."""

    def __init__(self, base_dir: Optional[Path] = None, *, seed_from: Optional[Path] = None) -> None:
        super().__init__(base_dir)
        self.seed_from = Path(seed_from).resolve() if seed_from else None

    def _provision(self, root: Path, label: str) -> Path:
        work = root / "work"
        if self.seed_from is None:
            work.mkdir()
            return work
        if not self.seed_from.is_dir():
            raise ProvisioningError(f"seed directory not found: {self.seed_from}")
        shutil.copytree(self.seed_from, work, ignore=_SEED_IGNORE, symlinks=True)
        return work


class WorktreeProvider(IsolationProvider):
    """One detached git worktree of *repo_path* per context."""

    def __init__(self, repo_path: Path, base_dir: Optional[Path] = None, *, ref: str = "HEAD") -> None:
        super().__init__(base_dir)
        self.repo_path = Path(repo_path).resolve()
        self.ref = ref
        # git takes repository-wide locks when adding/removing worktrees.
        self._git_lock = threading.Lock()

    def _git(self, *argv: str):
        with self._git_lock:
            return run_cmd(["git", "-C", str(self.repo_path), *argv], timeout_seconds=120)

    def _provision(self, root: Path, label: str) -> Path:
        work = root / "work"
        res = self._git("worktree", "add", "--detach", str(work), self.ref)
        if res.exit_code != 0 or res.timed_out:
            out = (res.stderr or res.stdout).strip()
            raise ProvisioningError(f"git worktree add failed for '{label}': {out}")
        return work

    def _teardown(self, context: IsolationContext) -> None:
        res = self._git("worktree", "remove", "--force", str(context.storage_handle))
        if res.exit_code != 0:
            logger.warning(
                "git worktree remove failed for %s: %s",
                context.context_id,
                (res.stderr or res.stdout).strip(),
            )
            self._git("worktree", "prune")
