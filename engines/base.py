"""engines.base

The analysis engine capability.

The engine is the only I/O boundary to the opaque analysis capability: given
an isolation context, a scope and a focus directive, it returns raw findings
text or raises :class:`~review_bench.domain.EngineError`. The orchestration
layer never inspects engine internals; it only classifies failures.

Adapters
--------
* :class:`engines.command.CommandEngine` - run a CLI (e.g. ``claude -p``)
* :class:`engines.http_engine.HttpEngine` - POST to an analysis service
* :class:`engines.stub.StubEngine` - deterministic canned output (tests, dry runs)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from review_bench.domain import IsolationContext

# Upper bound applied when a caller does not pass one. An invocation without a
# bound could block a join forever.
DEFAULT_TIMEOUT_SECONDS = 900.0


@dataclass(frozen=True)
class FocusDirective:
    """What one invocation should look at.

    ``focus`` is the dimension key (or ``"arbitration"``); ``prompt`` is the
    full instruction text sent to the engine.
    """

    focus: str
    prompt: str


class AnalysisEngine(Protocol):
    def invoke(
        self,
        context: IsolationContext,
        scope: str,
        directive: FocusDirective,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        """Return raw findings text, or raise EngineError."""
        ...


def render_prompt(scope: str, directive: FocusDirective) -> str:
    """Default prompt text for adapters that take a single prompt string."""
    return f"{directive.prompt}\n\nScope: {scope}"
