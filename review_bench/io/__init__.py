"""review_bench.io

Filesystem contracts and IO helpers.

The results layout is a public contract: one directory per comparison session
holding one document per run plus the comparison documents. Keeping the writers
here means every caller produces identically formatted, atomically written
artifacts.
"""

from __future__ import annotations

from .fs import write_json_atomic, write_text_atomic
from .run_dir import create_results_dir

__all__ = [
    "create_results_dir",
    "write_json_atomic",
    "write_text_atomic",
]
