from __future__ import annotations

import argparse

from review_pipeline.config import ENGINE_KINDS, ISOLATION_KINDS


def add_engine_args(parser: argparse.ArgumentParser) -> None:
    """Register flags that say *how* runs reach the engine and are isolated."""

    parser.add_argument(
        "--engine",
        choices=list(ENGINE_KINDS),
        help="Engine adapter: command (CLI subprocess), http (analysis service), stub (offline dry run).",
    )
    parser.add_argument(
        "--engine-url",
        dest="engine_url",
        help="(http engine) Endpoint to POST invocations to.",
    )
    parser.add_argument(
        "--engine-token-env",
        dest="engine_token_env",
        help="(http engine) Name of the env var holding the bearer token.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Upper bound in seconds for each engine invocation (default: 900).",
    )
    parser.add_argument(
        "--isolation",
        choices=list(ISOLATION_KINDS),
        help="tempdir = private directory per run, worktree = git worktree per run.",
    )
    parser.add_argument(
        "--repo-path",
        dest="repo_path",
        help="Repo to review: worktree source, or seed copy for tempdir isolation.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output (engine commands, context lifecycle).",
    )
