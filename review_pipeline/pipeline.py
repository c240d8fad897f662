"""review_pipeline.pipeline

A *single, high-level* object for this repo's primary capability: run the
same review through several sources and compare what they found.

Why this exists
---------------
The behavior lives across several modules:

- :mod:`review_pipeline.orchestrator` runs the sources concurrently
- :mod:`review_pipeline.compare` reconciles their reports
- :mod:`review_pipeline.record` writes the results directory

Callers (CLI, scripts, CI) should not wire those together themselves. The
:class:`ReviewPipeline` facade, built via :func:`review_pipeline.wiring.build_pipeline`,
is the one front door:

- ``run(config)``: full comparison, returns a :class:`ReviewResult`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from engines import AnalysisEngine
from review_bench.domain import AllRunsFailedError, ComparisonResult, RunReport

from .arbitration import Arbitrator, EngineArbitrator
from .compare import compare
from .config import ReviewConfig
from .dimensions import resolve_dimensions
from .isolation import IsolationProvider
from .orchestrator import RunOrchestrator
from .record import write_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewResult:
    comparison: ComparisonResult
    reports: Dict[str, RunReport]
    results_dir: Optional[Path] = None


class ReviewPipeline:
    """High-level facade over the pipeline."""

    def __init__(
        self,
        engine: AnalysisEngine,
        provider: IsolationProvider,
        *,
        arbitrator: Optional[Arbitrator] = None,
    ) -> None:
        self.engine = engine
        self.provider = provider
        self._arbitrator = arbitrator

    def arbitrator_for(self, config: ReviewConfig) -> Arbitrator:
        if self._arbitrator is not None:
            return self._arbitrator
        return EngineArbitrator(
            self.engine,
            self.provider,
            arbitrator_id=config.arbitrator_id,
            scope=config.scope,
            timeout_seconds=config.timeout_seconds,
        )

    def run_reports(self, config: ReviewConfig) -> Dict[str, RunReport]:
        """Run every source once and return their reports (no comparison)."""
        config.validate()
        orchestrator = RunOrchestrator(
            self.provider,
            self.engine,
            scope=config.scope,
            dimensions=resolve_dimensions(config.dimensions),
            tolerance=config.tolerance,
            timeout_seconds=config.timeout_seconds,
            max_parallel_runs=config.max_parallel_runs,
        )
        return orchestrator.launch_runs(config.sources)

    def run(self, config: ReviewConfig, *, write: bool = True) -> ReviewResult:
        """Run all sources, compare, and (optionally) persist the session.

        Raises :class:`AllRunsFailedError` when no run succeeded; the failed
        reports are still written first when ``write`` is set.
        """
        config.validate()
        try:
            reports = self.run_reports(config)
            try:
                comparison = compare(
                    list(reports.values()),
                    arbitrator=self.arbitrator_for(config),
                    tolerance=config.tolerance,
                )
            except AllRunsFailedError as e:
                logger.error("%s", e)
                if write:
                    write_session(config, reports, None, error=str(e))
                raise
        finally:
            self.provider.close()

        results_dir = write_session(config, reports, comparison) if write else None
        return ReviewResult(comparison=comparison, reports=reports, results_dir=results_dir)
