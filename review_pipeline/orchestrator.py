"""review_pipeline.orchestrator

Run orchestration: N independent full runs, concurrently, one per source.

Each run is a small pipeline with its own isolation context::

    Pending -> Provisioning -> Running -> Normalizing -> Merging -> Completed
                                                                  \\-> Failed

Transitions are strictly forward and ``Failed`` is terminal. A failing run
never cancels its siblings: :meth:`RunOrchestrator.launch_runs` always returns
one report per requested label, with failed runs carrying their terminal error.

Design principles
-----------------
- Every run owns its intermediate state (raw text, findings) until it hands
  back an immutable :class:`RunReport`. Nothing is accumulated in shared lists.
- Failures are contained at the smallest unit: a dimension failure degrades
  the run to ``Partial``; a provisioning failure fails only that run.
- The isolation context is always released, after the last worker using it
  has returned, and a release problem never replaces the run's report.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from engines import DEFAULT_TIMEOUT_SECONDS, AnalysisEngine
from review_bench.domain import (
    RUN_STATE_ORDER,
    ConfigError,
    Finding,
    InvalidTransitionError,
    IsolationContext,
    RunReport,
    RunState,
    RunStatus,
)

from .core import now_iso
from .dedup import DEFAULT_TOLERANCE, dedup_findings
from .dimensions import DimensionInfo, resolve_dimensions
from .fanout import DimensionFanOut, DimensionOutcome
from .isolation import IsolationProvider, safe_name
from .normalize import normalize_outputs

logger = logging.getLogger(__name__)


class RunStateMachine:
    """Forward-only lifecycle of one run."""

    def __init__(self, label: str) -> None:
        self.label = label
        self.state = RunState.PENDING
        self.history: List[RunState] = [RunState.PENDING]
        self.error: Optional[BaseException] = None

    def advance(self, to: RunState) -> None:
        if self.state.is_terminal:
            raise InvalidTransitionError(f"[{self.label}] run is {self.state.value}; cannot move to {to.value}")
        if to is RunState.FAILED:
            raise InvalidTransitionError(f"[{self.label}] use fail() to enter {to.value}")
        cur = RUN_STATE_ORDER.index(self.state)
        if RUN_STATE_ORDER.index(to) != cur + 1:
            raise InvalidTransitionError(f"[{self.label}] {self.state.value} -> {to.value} is not a forward step")
        self.state = to
        self.history.append(to)

    def fail(self, error: BaseException) -> None:
        if self.state.is_terminal:
            raise InvalidTransitionError(f"[{self.label}] run is already {self.state.value}")
        self.state = RunState.FAILED
        self.history.append(RunState.FAILED)
        self.error = error


def _run_status(outcomes: Sequence[DimensionOutcome]) -> RunStatus:
    if outcomes and all(o.ok for o in outcomes):
        return RunStatus.SUCCEEDED
    # Some (or every) dimension failed: the run still completes, with whatever
    # the remaining dimensions reported.
    return RunStatus.PARTIAL


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


def _release_when_settled(provider: IsolationProvider, ctx: IsolationContext, stragglers: Sequence[Future]) -> None:
    """Release *ctx* now, or once the last worker still using it returns."""
    pending = [f for f in stragglers if not f.done()]
    if not pending:
        provider.release(ctx)
        return

    logger.warning(
        "[%s] %d dimension worker(s) still running; releasing context %s when they return",
        ctx.label,
        len(pending),
        ctx.context_id,
    )
    lock = threading.Lock()
    remaining = [len(pending)]

    def _settled(_fut: Future) -> None:
        with lock:
            remaining[0] -= 1
            last = remaining[0] == 0
        if last:
            provider.release(ctx)

    for fut in pending:
        fut.add_done_callback(_settled)


class RunOrchestrator:
    def __init__(
        self,
        provider: IsolationProvider,
        engine: AnalysisEngine,
        *,
        scope: str,
        dimensions: Optional[Sequence[DimensionInfo]] = None,
        tolerance: int = DEFAULT_TOLERANCE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_parallel_runs: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.scope = scope
        self.tolerance = int(tolerance)
        self.max_parallel_runs = max_parallel_runs
        self.fanout = DimensionFanOut(
            engine,
            dimensions or resolve_dimensions(),
            timeout_seconds=timeout_seconds,
        )

    def execute_run(self, label: str) -> RunReport:
        """Run one source end to end. Never raises; failures become a Failed report."""
        sm = RunStateMachine(label)
        run_id = f"{safe_name(label)}-{uuid.uuid4().hex[:8]}"
        started = now_iso()
        ctx: Optional[IsolationContext] = None
        outcomes: List[DimensionOutcome] = []
        findings: List[Finding] = []
        stragglers: List[Future] = []

        try:
            sm.advance(RunState.PROVISIONING)
            ctx = self.provider.acquire(label)

            sm.advance(RunState.RUNNING)
            outcomes = self.fanout.run(ctx, self.scope, stragglers=stragglers)

            sm.advance(RunState.NORMALIZING)
            raw = [(o.focus, o.raw_text) for o in outcomes if o.ok]
            normalized = normalize_outputs(raw, strip_prefixes=[str(ctx.storage_handle)])

            sm.advance(RunState.MERGING)
            findings = dedup_findings(normalized, tolerance=self.tolerance)

            sm.advance(RunState.COMPLETED)
        except Exception as e:
            # Contained to this run; siblings keep going.
            logger.error("[%s] run failed in %s: %s", label, sm.state.value, _describe(e))
            if not sm.state.is_terminal:
                sm.fail(e)
        finally:
            if ctx is not None:
                _release_when_settled(self.provider, ctx, stragglers)

        dimension_errors = {o.focus: str(o.error) for o in outcomes if o.error is not None}
        if sm.state is RunState.FAILED:
            return RunReport(
                run_id=run_id,
                source_label=label,
                findings=(),
                started_at=started,
                completed_at=now_iso(),
                status=RunStatus.FAILED,
                state=RunState.FAILED,
                error=_describe(sm.error) if sm.error else "unknown error",
                dimension_errors=dimension_errors,
                context_id=ctx.context_id if ctx else None,
            )

        status = _run_status(outcomes)
        logger.info(
            "[%s] run completed: %s, %d finding(s), %d/%d dimension(s) ok",
            label,
            status.value,
            len(findings),
            sum(1 for o in outcomes if o.ok),
            len(outcomes),
        )
        return RunReport(
            run_id=run_id,
            source_label=label,
            findings=tuple(findings),
            started_at=started,
            completed_at=now_iso(),
            status=status,
            state=RunState.COMPLETED,
            dimension_errors=dimension_errors,
            context_id=ctx.context_id if ctx else None,
        )

    def launch_runs(self, labels: Sequence[str]) -> Dict[str, RunReport]:
        """Launch one run per label concurrently and join on all of them.

        The returned mapping has exactly one entry per label, in the caller's
        order. Failed runs are present with ``status=Failed`` and their error.
        """
        labels = [str(x) for x in labels]
        if not labels:
            raise ConfigError("launch_runs requires at least one source label")
        if len(set(labels)) != len(labels):
            raise ConfigError(f"duplicate source labels: {labels}")

        workers = self.max_parallel_runs or len(labels)
        with ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="run") as executor:
            futures = {label: executor.submit(self.execute_run, label) for label in labels}

        reports: Dict[str, RunReport] = {}
        for label in labels:
            try:
                reports[label] = futures[label].result()
            except Exception as e:
                # execute_run does not raise; this guards the join itself.
                now = now_iso()
                reports[label] = RunReport(
                    run_id=f"{safe_name(label)}-{uuid.uuid4().hex[:8]}",
                    source_label=label,
                    findings=(),
                    started_at=now,
                    completed_at=now,
                    status=RunStatus.FAILED,
                    state=RunState.FAILED,
                    error=_describe(e),
                )
        return reports
