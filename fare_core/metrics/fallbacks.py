"""
Fallback reason recording.

Every degraded path through the positioning pipeline records a reason
code. A FallbackRecorder belongs to a single localization call and its
reasons end up on the returned estimate; a FallbackTally aggregates
them over many estimates. Neither is shared between calls, so the
engine needs no locking.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)

# Standard fallback reason codes
FALLBACK_REASONS = {
    'insufficient_anchors': 'Fewer than 3 anchors, centroid returned',
    'singular_system': 'Singular/ill-conditioned linear system, next strategy used',
    'degenerate_circles': 'Circles do not properly intersect, next strategy used',
    'degenerate_geometry': 'Singular GDOP geometry matrix, fixed weight used',
    'invalid_candidate': 'Candidate estimate is not finite',
    'nonconvergent_refinement': 'Refinement diverged, pre-refinement estimate kept',
    'non_finite_estimate': 'Selected estimate not finite, centroid returned',
}


class FallbackRecorder:
    """
    Fallback reasons taken during one localization call.

    Usage:
        recorder = FallbackRecorder()
        weight = gdop_weight(anchors, recorder=recorder)
        if recorder:
            print(recorder.reasons())
    """

    def __init__(self):
        self._reasons: List[str] = []

    def record(self, reason: str):
        """
        Record one fallback.

        Args:
            reason: Fallback reason code (should be in FALLBACK_REASONS)
        """
        if reason not in FALLBACK_REASONS:
            # Unknown reason is still recorded
            logger.warning("Unknown fallback reason '%s'", reason)
        self._reasons.append(reason)

    def count(self, reason: str) -> int:
        """Number of times reason was recorded."""
        return self._reasons.count(reason)

    def reasons(self) -> Tuple[str, ...]:
        """Recorded reasons in the order they occurred."""
        return tuple(self._reasons)

    def __len__(self) -> int:
        return len(self._reasons)


@dataclass
class FallbackTally:
    """
    Fallback counts aggregated over many estimates.

    Attributes:
        estimates: Number of estimates added
        degraded: Estimates with at least one fallback
        counts: Fallbacks per reason code
    """

    estimates: int = 0
    degraded: int = 0
    counts: Counter = field(default_factory=Counter)

    def add(self, reasons: Iterable[str]):
        """Add the fallback reasons of one estimate."""
        reasons = list(reasons)
        self.estimates += 1
        if reasons:
            self.degraded += 1
        self.counts.update(reasons)

    def total(self) -> int:
        """Total fallbacks across all reasons."""
        return sum(self.counts.values())

    def degraded_rate(self) -> float:
        """Percentage of estimates that took any fallback."""
        if self.estimates == 0:
            return 0.0
        return (self.degraded / self.estimates) * 100.0

    def as_dict(self) -> Dict[str, int]:
        """Counts for every standard reason plus any unknown ones seen."""
        result = {reason: 0 for reason in FALLBACK_REASONS}
        result.update(self.counts)
        return result
