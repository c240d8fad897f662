"""engines

Adapters to the external analysis engine.

Rule
----
Only this package talks to the analysis capability (subprocesses, HTTP).
The orchestration layer depends on the :class:`AnalysisEngine` protocol and
never on a concrete adapter, so tests can swap in :class:`StubEngine`.
"""

from __future__ import annotations

from .base import DEFAULT_TIMEOUT_SECONDS, AnalysisEngine, FocusDirective, render_prompt
from .command import CommandEngine
from .http_engine import HttpEngine
from .stub import StubEngine

__all__ = [
    "AnalysisEngine",
    "CommandEngine",
    "DEFAULT_TIMEOUT_SECONDS",
    "FocusDirective",
    "HttpEngine",
    "StubEngine",
    "render_prompt",
]
