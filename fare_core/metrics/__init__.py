"""
Metrics Module: Fallback reason codes.

Every degraded path through the positioning engine records a fallback
reason code on the estimate it returns, so a long Monte Carlo run can
report how often each fallback was taken.

Usage:
    from fare_core.metrics import FallbackTally

    tally = FallbackTally()
    for _ in range(trials):
        estimate = engine.localize(true_pos, anchors, 0.05, 0.02, rng=rng)
        tally.add(estimate.fallbacks)
    print(tally.as_dict())
"""

from .fallbacks import FALLBACK_REASONS, FallbackRecorder, FallbackTally

__all__ = ['FALLBACK_REASONS', 'FallbackRecorder', 'FallbackTally']
