"""review_pipeline

Orchestration layer: isolation, dimension fan-out, normalization, dedup,
run orchestration, cross-run comparison and arbitration.

Depends on :mod:`review_bench` (contracts) and :mod:`engines` (adapters);
neither of those imports from here.
"""
