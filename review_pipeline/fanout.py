"""review_pipeline.fanout

Dimension fan-out: one engine invocation per dimension, all concurrent,
against the same isolation context.

Workers never see each other's output; each one writes only its own
:class:`DimensionOutcome`, and outcomes are joined once every worker has
finished, failed, or run past its time bound. One worker failing never
cancels its siblings.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Sequence

from engines import DEFAULT_TIMEOUT_SECONDS, AnalysisEngine, FocusDirective
from review_bench.domain import EngineError, EngineErrorKind, IsolationContext

from .dimensions import DimensionInfo, resolve_dimensions

logger = logging.getLogger(__name__)

# Extra time the join waits past the engine's own timeout before giving up on
# a worker.
JOIN_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class DimensionOutcome:
    """Result of one dimension worker: raw text or the error that replaced it."""

    focus: str
    raw_text: Optional[str] = None
    error: Optional[EngineError] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class DimensionFanOut:
    def __init__(
        self,
        engine: AnalysisEngine,
        dimensions: Optional[Sequence[DimensionInfo]] = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        join_grace_seconds: float = JOIN_GRACE_SECONDS,
    ) -> None:
        if timeout_seconds is None or timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be a positive upper bound")
        self.engine = engine
        self.dimensions = tuple(dimensions) if dimensions else tuple(resolve_dimensions())
        self.timeout_seconds = float(timeout_seconds)
        self.join_grace_seconds = float(join_grace_seconds)

    def _invoke_one(self, context: IsolationContext, scope: str, dim: DimensionInfo) -> DimensionOutcome:
        t0 = time.monotonic()
        directive = FocusDirective(focus=dim.key, prompt=dim.prompt())
        try:
            raw = self.engine.invoke(context, scope, directive, timeout_seconds=self.timeout_seconds)
        except EngineError as e:
            if e.focus is None:
                e = EngineError(e.kind, e.message, focus=dim.key)
            return DimensionOutcome(focus=dim.key, error=e, elapsed_seconds=time.monotonic() - t0)
        except Exception as e:
            # An adapter bug is still one worker's failure, not the run's.
            err = EngineError(EngineErrorKind.CRASH, f"{type(e).__name__}: {e}", focus=dim.key)
            return DimensionOutcome(focus=dim.key, error=err, elapsed_seconds=time.monotonic() - t0)
        return DimensionOutcome(focus=dim.key, raw_text=raw, elapsed_seconds=time.monotonic() - t0)

    def run(
        self,
        context: IsolationContext,
        scope: str,
        *,
        stragglers: Optional[List[Future]] = None,
    ) -> List[DimensionOutcome]:
        """Fan out over all dimensions and join. Outcomes follow dimension order.

        Workers still running after the join are appended to *stragglers*; they
        keep using *context* until they return.
        """
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(self.dimensions)),
            thread_name_prefix=f"dim-{context.label}",
        )
        try:
            futures = [
                (dim, executor.submit(self._invoke_one, context, scope, dim))
                for dim in self.dimensions
            ]
            wait([f for _, f in futures], timeout=self.timeout_seconds + self.join_grace_seconds)
        finally:
            # Do not block on a worker that overran its bound.
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: List[DimensionOutcome] = []
        for dim, fut in futures:
            if fut.done() and not fut.cancelled():
                outcome = fut.result()
            else:
                if stragglers is not None and not fut.done():
                    stragglers.append(fut)
                outcome = DimensionOutcome(
                    focus=dim.key,
                    error=EngineError(
                        EngineErrorKind.TIMEOUT,
                        f"no result within {self.timeout_seconds + self.join_grace_seconds:g}s",
                        focus=dim.key,
                    ),
                    elapsed_seconds=self.timeout_seconds + self.join_grace_seconds,
                )
            if outcome.error is not None:
                logger.warning("[%s] dimension %s failed: %s", context.label, dim.key, outcome.error)
            outcomes.append(outcome)
        return outcomes
