"""review_bench.domain.context

The isolation context handed to every engine invocation of one run.

Providers live in :mod:`review_pipeline.isolation`; this module only defines
the record so engine adapters can depend on it without importing the
orchestration layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class IsolationContext:
    """A private execution environment for one run.

    Attributes
    ----------
    context_id:
        Unique id among all contexts acquired from the same provider.
    label:
        The source label the context was acquired for (e.g. a model name).
    storage_handle:
        Working copy the engine runs against. Never shared by two live contexts.
    state_namespace:
        Private namespace for engine session state (config dirs, caches).
    state_dir:
        Directory backing ``state_namespace``.
    """

    context_id: str
    label: str
    storage_handle: Path
    state_namespace: str
    state_dir: Path

    def as_dict(self) -> Dict[str, Any]:
        return {
            "context_id": self.context_id,
            "label": self.label,
            "storage_handle": str(self.storage_handle),
            "state_namespace": self.state_namespace,
            "state_dir": str(self.state_dir),
        }
