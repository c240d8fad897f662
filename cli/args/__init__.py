"""CLI argument builder modules.

The top-level :mod:`review_cli` is intentionally kept thin. Groups of flags
are registered via small "arg builder" functions housed here:

- :func:`cli.args.review.add_review_args`
- :func:`cli.args.engine.add_engine_args`
"""

from __future__ import annotations

__all__ = [
    "review",
    "engine",
]
