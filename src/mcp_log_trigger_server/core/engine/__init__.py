"""Trigger evaluation engines.

Single-pass chain execution, the rate-limited re-fire driver and MULTI
instance correlation.
"""

from __future__ import annotations

from .chain import MAX_CHAIN_RESETS, execute_chain
from .limiter import MAX_FIRINGS, evaluate_buffer, evaluate_trigger, is_suppressed, run_limited
from .multi import MAX_MULTI_INSTANCES, MultiOutcome, correlate_instances

__all__ = [
    "MAX_CHAIN_RESETS",
    "MAX_FIRINGS",
    "MAX_MULTI_INSTANCES",
    "MultiOutcome",
    "correlate_instances",
    "evaluate_buffer",
    "evaluate_trigger",
    "execute_chain",
    "is_suppressed",
    "run_limited",
]
