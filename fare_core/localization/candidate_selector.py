"""
Candidate Selection and Geometry-Aware Blending.

Picks the candidate whose implied ranges best match the measured ranges,
then shrinks it toward the anchor centroid by an amount set by the GDOP
weight.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple
import logging
import numpy as np

from fare_core.localization.geometry import (
    centroid,
    distance_deviation,
    is_finite_point,
)
from fare_core.metrics import FallbackRecorder

logger = logging.getLogger(__name__)

BLEND_SLOPE = 0.98
BLEND_FLOOR = 0.02


@dataclass
class CandidateSelection:
    """
    Outcome of candidate selection.

    Attributes:
        position: Winning candidate (may be non-finite if all were invalid)
        method: Name of the winning estimator
        deviation_m: L2 range deviation of the winner (inf if none valid)
        deviations: Range deviation per finite candidate, by name
        all_invalid: True if no candidate was finite
    """

    position: np.ndarray
    method: str
    deviation_m: float
    deviations: Dict[str, float] = field(default_factory=dict)
    all_invalid: bool = False


def select_candidate(
    candidates: Sequence[Tuple[str, np.ndarray]],
    anchors: np.ndarray,
    distances: np.ndarray,
    recorder: Optional[FallbackRecorder] = None,
) -> CandidateSelection:
    """
    Select the candidate with minimum range deviation.

    Args:
        candidates: (name, position) pairs in evaluation order; the
            first entry is the last-resort result
        anchors: (N, 2) anchor positions
        distances: Measured ranges
        recorder: Receives one invalid_candidate per non-finite candidate

    Returns:
        CandidateSelection; ties go to the earlier candidate, and
        non-finite candidates are skipped
    """
    if not candidates:
        raise ValueError("No candidates to select from")

    recorder = recorder if recorder is not None else FallbackRecorder()
    best_name, best_pos = candidates[0]
    best_deviation = np.inf
    deviations: Dict[str, float] = {}
    found = False

    for name, pos in candidates:
        if not is_finite_point(pos):
            recorder.record('invalid_candidate')
            logger.debug("Candidate '%s' is not finite, skipped", name)
            continue

        deviation = distance_deviation(pos, anchors, distances)
        deviations[name] = deviation
        if deviation < best_deviation:
            best_deviation = deviation
            best_name, best_pos = name, pos
            found = True

    return CandidateSelection(
        position=np.asarray(best_pos, dtype=float),
        method=best_name,
        deviation_m=float(best_deviation),
        deviations=deviations,
        all_invalid=not found,
    )


def blend_factor(weight: float) -> float:
    """Trust in the selected estimate: 0.98 * gdop_weight + 0.02."""
    return BLEND_SLOPE * weight + BLEND_FLOOR


def blend_toward_centroid(position: np.ndarray, anchors: np.ndarray, weight: float) -> np.ndarray:
    """
    Shrink position toward the anchor centroid by (1 - blend_factor).

    Args:
        position: Selected candidate
        anchors: (N, 2) anchor positions
        weight: GDOP weight in [0.7, 1.0]

    Returns:
        position * α + centroid * (1 - α)
    """
    alpha = blend_factor(weight)
    return position * alpha + centroid(anchors) * (1.0 - alpha)
