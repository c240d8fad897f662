#!/usr/bin/env python3
"""
CLI for the multi-source review comparison.

Runs the same review through several sources concurrently (one isolated run
each, fanned out over review dimensions), then reports what the sources
agree on, what only one of them found, and how severity disagreements were
resolved.

Usage:
  python review_cli.py --scope src/ --sources opus,sonnet
  python review_cli.py --config review.yaml --sources opus,sonnet,haiku --arbitrator opus
  python review_cli.py --scope . --sources a,b --engine stub --no-write
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from cli.args.engine import add_engine_args
from cli.args.review import add_review_args
from cli.commands.compare import run_compare


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare code-review findings across independent sources.")
    add_review_args(parser)
    add_engine_args(parser)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return run_compare(args)


if __name__ == "__main__":
    raise SystemExit(main())
