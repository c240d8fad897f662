"""review_bench.io.run_dir

Results directory helpers that are part of the **filesystem contract**.

Every comparison session writes into its own dated directory::

    results/<YYYYMMDD-HHMMSS>/
        <source>.json        one report per run
        <source>.err         terminal error of a failed run
        comparison.json
        comparison.md
        manifest.json

Two sessions started in the same second get a ``-NN`` suffix instead of
sharing a directory.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple


def _anchor_under_cwd(path: Path) -> Path:
    """Anchor a relative path under the current working directory."""
    return path if path.is_absolute() else (Path.cwd() / path)


def create_results_dir(output_root: Path | str, *, now: Optional[datetime] = None) -> Tuple[str, Path]:
    """Create ``<output_root>/<YYYYMMDD-HHMMSS>[-NN]`` and return ``(session_id, path)``.

    A relative output_root (e.g. "results") is anchored under the current
    working directory, never under the installed package.
    """
    root = output_root if isinstance(output_root, Path) else Path(output_root)
    root = _anchor_under_cwd(root)
    root.mkdir(parents=True, exist_ok=True)

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")

    # Concurrency-safe creation: if a directory already exists (another process),
    # add a sequence suffix and retry.
    idx = 0
    while True:
        session_id = stamp if idx == 0 else f"{stamp}-{idx:02d}"
        results_dir = root / session_id
        try:
            results_dir.mkdir(parents=True, exist_ok=False)
            return session_id, results_dir
        except FileExistsError:
            idx += 1
