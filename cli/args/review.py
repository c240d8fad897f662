from __future__ import annotations

import argparse

from review_pipeline.dimensions import DEFAULT_DIMENSIONS


def add_review_args(parser: argparse.ArgumentParser) -> None:
    """Register flags that say *what* to compare.

    Every flag defaults to None so that an explicit value can be told apart
    from "not given" and override the --config file field by field.
    """

    parser.add_argument(
        "--config",
        help="YAML config file. CLI flags override its fields.",
    )
    parser.add_argument(
        "--scope",
        help="What to review (handed verbatim to every engine invocation, e.g. 'src/' or 'the diff against main').",
    )
    parser.add_argument(
        "--sources",
        help="Comma-separated source labels; one full run each (e.g. opus,sonnet).",
    )
    parser.add_argument(
        "--arbitrator",
        help="Source that resolves severity disagreements (default: the last source).",
    )
    parser.add_argument(
        "--dimensions",
        help=f"Comma-separated dimensions to fan out over (default: {','.join(DEFAULT_DIMENSIONS)}).",
    )
    parser.add_argument(
        "--tolerance",
        type=int,
        default=None,
        help="Line tolerance when matching findings (default: 3).",
    )
    parser.add_argument(
        "--max-parallel-runs",
        dest="max_parallel_runs",
        type=int,
        default=None,
        help="Upper bound on concurrent runs (default: one per source).",
    )
    parser.add_argument(
        "--output-root",
        dest="output_root",
        help="Base directory for results (default: results).",
    )
    parser.add_argument(
        "--no-write",
        dest="no_write",
        action="store_true",
        help="Do not write a results directory; print the summary only.",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the comparison as JSON instead of the text summary.",
    )
