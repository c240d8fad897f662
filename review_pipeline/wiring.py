"""review_pipeline.wiring

This module is the **composition root**.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load environment variables (``.env`` via python-dotenv)
- choose the engine adapter and the isolation provider from config
- build the :class:`~review_pipeline.pipeline.ReviewPipeline` facade

Entrypoints (CLI, scripts, CI) call :func:`build_pipeline` instead of
constructing adapters themselves.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from engines import AnalysisEngine, CommandEngine, HttpEngine, StubEngine
from review_bench.domain import ConfigError

from .config import EngineSettings, ReviewConfig
from .isolation import IsolationProvider, TempDirProvider, WorktreeProvider
from .pipeline import ReviewPipeline


def load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load ``.env`` without overriding variables already set.

    Without an explicit path the nearest ``.env`` at or above the working
    directory is used.
    """
    path = str(dotenv_path) if dotenv_path is not None else find_dotenv(usecwd=True)
    if path and Path(path).exists():
        load_dotenv(path, override=False)


def build_engine(settings: EngineSettings) -> AnalysisEngine:
    if settings.kind == "command":
        return CommandEngine(settings.command, models=settings.models)
    if settings.kind == "http":
        if not settings.url:
            raise ConfigError("engine.url is required for the http engine")
        return HttpEngine(settings.url, token_env=settings.token_env, models=settings.models)
    if settings.kind == "stub":
        return StubEngine()
    raise ConfigError(f"Unknown engine kind '{settings.kind}'")


def build_provider(config: ReviewConfig) -> IsolationProvider:
    if config.isolation == "worktree":
        if config.repo_path is None:
            raise ConfigError("repo_path is required for worktree isolation")
        return WorktreeProvider(config.repo_path)
    return TempDirProvider(seed_from=config.repo_path)


def build_pipeline(
    config: ReviewConfig,
    *,
    engine: Optional[AnalysisEngine] = None,
    provider: Optional[IsolationProvider] = None,
    env: bool = True,
) -> ReviewPipeline:
    """Build the pipeline facade for *config*.

    ``engine`` / ``provider`` replace the configured ones (tests, dry runs).
    """
    if env:
        load_env()
    config.validate()
    return ReviewPipeline(
        engine if engine is not None else build_engine(config.engine),
        provider if provider is not None else build_provider(config),
    )
