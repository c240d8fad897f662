"""review_pipeline.config

YAML / programmatic configuration for one comparison request.

Why this exists
---------------
The CLI and library callers both need to say *what* to compare:

- the scope handed to every engine invocation
- the sources (one full run each) and the arbitrator identity
- which dimensions to fan out over, and the merge tolerance

plus *how* to reach the engine and isolate runs. YAML is optional: a config
file acts as defaults, and CLI flags override it field by field.

Design goals
------------
- Tolerate missing optional fields.
- Validate once, here; downstream code trusts a :class:`ReviewConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from engines import DEFAULT_TIMEOUT_SECONDS
from engines.command import DEFAULT_COMMAND
from review_bench.domain import ConfigError

from .dedup import DEFAULT_TOLERANCE
from .dimensions import resolve_dimensions

ENGINE_KINDS: Tuple[str, ...] = ("command", "http", "stub")
ISOLATION_KINDS: Tuple[str, ...] = ("tempdir", "worktree")


def _as_list(v: Any) -> list:
    if v is None:
        return []
    if isinstance(v, str):
        return [t.strip() for t in v.split(",") if t.strip()]
    if isinstance(v, (list, tuple)):
        return [str(t).strip() for t in v if str(t).strip()]
    raise ConfigError(f"expected a list or comma-separated string, got {type(v).__name__}")


@dataclass(frozen=True)
class EngineSettings:
    """How to reach the analysis engine."""

    kind: str = "command"
    command: Tuple[str, ...] = DEFAULT_COMMAND
    url: Optional[str] = None
    token_env: Optional[str] = None

    # Optional source label -> engine model name.
    models: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "command": list(self.command),
            "url": self.url,
            "token_env": self.token_env,
            "models": dict(self.models),
        }

    @staticmethod
    def from_dict(raw: Optional[Dict[str, Any]]) -> "EngineSettings":
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ConfigError("engine must be a mapping")
        command = raw.get("command")
        if isinstance(command, str):
            command = command.split()
        models = raw.get("models") or {}
        if not isinstance(models, dict):
            raise ConfigError("engine.models must be a mapping of source label to model name")
        return EngineSettings(
            kind=str(raw.get("kind") or "command").strip().lower(),
            command=tuple(str(c) for c in command) if command else DEFAULT_COMMAND,
            url=raw.get("url") or None,
            token_env=raw.get("token_env") or None,
            models={str(k): str(v) for k, v in models.items()},
        )


@dataclass(frozen=True)
class ReviewConfig:
    """One comparison request. Shared read-only by every run."""

    scope: str
    sources: Tuple[str, ...]
    arbitrator: Optional[str] = None
    dimensions: Tuple[str, ...] = ()
    tolerance: int = DEFAULT_TOLERANCE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_parallel_runs: Optional[int] = None
    output_root: Path = Path("results")
    engine: EngineSettings = field(default_factory=EngineSettings)
    isolation: str = "tempdir"
    repo_path: Optional[Path] = None

    @property
    def arbitrator_id(self) -> str:
        return self.arbitrator or self.sources[-1]

    def validate(self) -> "ReviewConfig":
        if not str(self.scope or "").strip():
            raise ConfigError("scope is required")
        if not self.sources:
            raise ConfigError("at least one source is required")
        if len(set(self.sources)) != len(self.sources):
            raise ConfigError(f"duplicate sources: {list(self.sources)}")
        resolve_dimensions(self.dimensions)
        if self.tolerance < 0:
            raise ConfigError("tolerance must be >= 0")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be > 0")
        if self.max_parallel_runs is not None and self.max_parallel_runs < 1:
            raise ConfigError("max_parallel_runs must be >= 1")
        if self.engine.kind not in ENGINE_KINDS:
            raise ConfigError(f"Unknown engine kind '{self.engine.kind}'. Valid: {list(ENGINE_KINDS)}")
        if self.engine.kind == "http" and not self.engine.url:
            raise ConfigError("engine.url is required for the http engine")
        if self.isolation not in ISOLATION_KINDS:
            raise ConfigError(f"Unknown isolation '{self.isolation}'. Valid: {list(ISOLATION_KINDS)}")
        if self.isolation == "worktree" and self.repo_path is None:
            raise ConfigError("repo_path is required for worktree isolation")
        return self

    def with_overrides(self, **overrides: Any) -> "ReviewConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "sources": list(self.sources),
            "arbitrator": self.arbitrator_id,
            "dimensions": list(self.dimensions),
            "tolerance": int(self.tolerance),
            "timeout_seconds": float(self.timeout_seconds),
            "max_parallel_runs": self.max_parallel_runs,
            "output_root": str(self.output_root),
            "engine": self.engine.to_dict(),
            "isolation": self.isolation,
            "repo_path": str(self.repo_path) if self.repo_path else None,
        }

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "ReviewConfig":
        raw = raw or {}
        try:
            tolerance = int(raw.get("tolerance", DEFAULT_TOLERANCE))
            timeout = float(raw.get("timeout_seconds", raw.get("timeout", DEFAULT_TIMEOUT_SECONDS)))
            mpr = raw.get("max_parallel_runs")
            mpr = int(mpr) if mpr is not None else None
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid numeric setting: {e}") from e

        repo_path = raw.get("repo_path")
        return ReviewConfig(
            scope=str(raw.get("scope") or ""),
            sources=tuple(_as_list(raw.get("sources") or raw.get("models"))),
            arbitrator=raw.get("arbitrator") or None,
            dimensions=tuple(_as_list(raw.get("dimensions"))),
            tolerance=tolerance,
            timeout_seconds=timeout,
            max_parallel_runs=mpr,
            output_root=Path(raw.get("output_root") or "results"),
            engine=EngineSettings.from_dict(raw.get("engine")),
            isolation=str(raw.get("isolation") or "tempdir").strip().lower(),
            repo_path=Path(repo_path).expanduser() if repo_path else None,
        )


def load_config_yaml(path: str | Path) -> ReviewConfig:
    """Load a config from YAML.

    The result is not validated yet: CLI overrides are applied first, then
    :meth:`ReviewConfig.validate`.
    """
    import yaml

    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config YAML must be a mapping/object at top level: {p}")
    return ReviewConfig.from_dict(raw)
