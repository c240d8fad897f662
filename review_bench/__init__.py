"""review_bench

Contracts package for the review comparison pipeline.

This package owns the pieces every other layer agrees on:

* domain types (findings, run reports, comparison results, errors)
* IO rules (atomic artifact writers, results directory allocation)

It depends on nothing else in the repository. ``engines`` and
``review_pipeline`` depend on it, never the other way round.
"""

from __future__ import annotations
