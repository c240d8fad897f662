from __future__ import annotations

import argparse
import json

from cli.common import optional_path, parse_csv
from cli.ui import print_comparison, print_runs
from review_bench.domain import AllRunsFailedError, ConfigError
from review_pipeline.config import EngineSettings, ReviewConfig, load_config_yaml
from review_pipeline.wiring import build_pipeline

EXIT_OK = 0
EXIT_ALL_RUNS_FAILED = 1
EXIT_CONFIG_ERROR = 2


def config_from_args(args: argparse.Namespace) -> ReviewConfig:
    """Config file (if any) first, then every flag the user actually passed."""
    if args.config:
        base = load_config_yaml(args.config)
    else:
        base = ReviewConfig(scope="", sources=())

    sources = parse_csv(args.sources)
    dimensions = parse_csv(args.dimensions)

    engine = base.engine
    if args.engine or args.engine_url or args.engine_token_env:
        engine = EngineSettings(
            kind=args.engine or engine.kind,
            command=engine.command,
            url=args.engine_url or engine.url,
            token_env=args.engine_token_env or engine.token_env,
            models=engine.models,
        )

    cfg = base.with_overrides(
        scope=args.scope,
        sources=tuple(sources) if sources is not None else None,
        arbitrator=args.arbitrator,
        dimensions=tuple(dimensions) if dimensions is not None else None,
        tolerance=args.tolerance,
        timeout_seconds=args.timeout,
        max_parallel_runs=args.max_parallel_runs,
        output_root=optional_path(args.output_root),
        engine=engine,
        isolation=args.isolation,
        repo_path=optional_path(args.repo_path),
    )
    return cfg.validate()


def run_compare(args: argparse.Namespace) -> int:
    try:
        config = config_from_args(args)
        pipeline = build_pipeline(config)
    except ConfigError as e:
        print(f"❌ Config error: {e}")
        return EXIT_CONFIG_ERROR

    print("\n🚀 Running review comparison")
    print(f"  Scope      : {config.scope}")
    print(f"  Sources    : {', '.join(config.sources)}")
    print(f"  Arbitrator : {config.arbitrator_id}")
    print(f"  Engine     : {config.engine.kind}   Isolation: {config.isolation}")

    try:
        result = pipeline.run(config, write=not args.no_write)
    except AllRunsFailedError as e:
        print(f"\n❌ {e}")
        return EXIT_ALL_RUNS_FAILED

    if args.as_json:
        print(json.dumps(result.comparison.to_dict(), indent=2, sort_keys=True))
    else:
        print_runs(result.reports)
        print_comparison(result.comparison)

    if result.results_dir is not None:
        print(f"\n📁 Results: {result.results_dir}")
    return EXIT_OK
