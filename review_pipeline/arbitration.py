"""review_pipeline.arbitration

Severity arbitration for overlapping findings.

When several runs report the same issue with different severities, the
comparator asks an *arbitrator* to pick one. The arbitrator identity is
configuration (default: the last configured source) and is recorded next to
every resolved disagreement.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol

from engines import DEFAULT_TIMEOUT_SECONDS, AnalysisEngine, FocusDirective
from review_bench.domain import ArbitrationError, EngineError, Finding, Severity

from .isolation import IsolationProvider

logger = logging.getLogger(__name__)

ARBITRATION_FOCUS = "arbitration"


class Arbitrator(Protocol):
    arbitrator_id: str

    def arbitrate(self, finding: Finding, ratings: Mapping[str, Severity]) -> Severity:
        """Return the chosen severity, or raise ArbitrationError."""
        ...


def arbitration_prompt(finding: Finding, ratings: Mapping[str, Severity]) -> str:
    lines = [
        "Independent reviewers reported the same issue with different severities.",
        "Decide which severity is correct.",
        "",
        f"Location: {finding.location.describe()}",
        f"Category: {finding.category}",
        f"Description: {finding.description}",
        "",
        "Ratings:",
    ]
    for label in sorted(ratings):
        lines.append(f"- {label}: {ratings[label].value}")
    lines += [
        "",
        "Reply with exactly one word: Critical, High, Medium or Low.",
    ]
    return "\n".join(lines)


def parse_verdict(raw: Optional[str]) -> Severity:
    sev = Severity.parse(raw)
    if sev is None:
        snippet = (raw or "").strip().splitlines()[:1]
        raise ArbitrationError(f"no severity in arbitrator reply: {snippet[0][:80] if snippet else '<empty>'!r}")
    return sev


class EngineArbitrator:
    """Arbitrate by asking the analysis engine, as source ``arbitrator_id``.

    Every call runs in its own isolation context, like any other invocation.
    """

    def __init__(
        self,
        engine: AnalysisEngine,
        provider: IsolationProvider,
        *,
        arbitrator_id: str,
        scope: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not arbitrator_id:
            raise ValueError("arbitrator_id is required")
        self.engine = engine
        self.provider = provider
        self.arbitrator_id = arbitrator_id
        self.scope = scope
        self.timeout_seconds = float(timeout_seconds)

    def arbitrate(self, finding: Finding, ratings: Mapping[str, Severity]) -> Severity:
        directive = FocusDirective(focus=ARBITRATION_FOCUS, prompt=arbitration_prompt(finding, ratings))
        try:
            ctx = self.provider.acquire(self.arbitrator_id)
        except Exception as e:
            raise ArbitrationError(f"could not provision arbitration context: {e}") from e
        try:
            raw = self.engine.invoke(ctx, self.scope, directive, timeout_seconds=self.timeout_seconds)
        except EngineError as e:
            raise ArbitrationError(f"arbitrator {self.arbitrator_id} failed: {e}") from e
        except Exception as e:
            raise ArbitrationError(f"arbitrator {self.arbitrator_id} crashed: {type(e).__name__}: {e}") from e
        finally:
            self.provider.release(ctx)
        verdict = parse_verdict(raw)
        logger.debug("arbitrator %s chose %s for %s", self.arbitrator_id, verdict.value, finding.location.describe())
        return verdict
