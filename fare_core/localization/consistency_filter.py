"""
Final Consistency Filter.

Last stage of the pipeline: if the estimate's implied ranges disagree
with the measured ranges on average, pull it slightly toward the anchor
centroid; then keep it within a reasonable radius of the centroid.
"""

from dataclasses import dataclass
from typing import Optional
import numpy as np

from fare_core.localization.geometry import (
    centroid,
    max_anchor_spread,
    mean_abs_deviation,
)


@dataclass
class ConsistencyConfig:
    """
    Configuration for the final consistency filter.

    Attributes:
        max_mean_deviation_m: Mean range deviation that triggers correction (m)
        max_correction: Upper bound of the pull toward the centroid
        deviation_scale_m: Deviation giving full correction (m)
        radius_margin_m: Margin added to the anchor spread for the clamp (m)
    """

    max_mean_deviation_m: float = 0.02  # 2cm
    max_correction: float = 0.1
    deviation_scale_m: float = 0.5
    radius_margin_m: float = 5.0

    def __post_init__(self):
        """Validate configuration."""
        assert self.max_mean_deviation_m >= 0, "deviation threshold must be non-negative"
        assert 0.0 <= self.max_correction <= 1.0, "max_correction must be in [0, 1]"
        assert self.deviation_scale_m > 0, "deviation scale must be positive"
        assert self.radius_margin_m >= 0, "radius margin must be non-negative"


@dataclass
class ConsistencyResult:
    """
    Outcome of the consistency filter.

    Attributes:
        position: Filtered position
        mean_deviation_m: Mean absolute range deviation before filtering
        corrected: True if the point was pulled toward the centroid
        clamped: True if the point was projected onto the max radius
    """

    position: np.ndarray
    mean_deviation_m: float
    corrected: bool
    clamped: bool


def max_reasonable_radius(anchors: np.ndarray, margin: float) -> float:
    """Largest allowed distance from the anchor centroid."""
    return max_anchor_spread(anchors) + margin


def apply_consistency_filter(
    position: np.ndarray,
    anchors: np.ndarray,
    distances: np.ndarray,
    config: Optional[ConsistencyConfig] = None,
) -> ConsistencyResult:
    """
    Apply the range-consistency correction and radius clamp.

    Args:
        position: Estimate after selection/refinement
        anchors: (N, 2) anchor positions
        distances: Measured ranges
        config: Filter configuration (uses defaults if None)

    Returns:
        ConsistencyResult

    Notes:
        - Correction factor = min(max_correction, mean_deviation / scale)
        - A consistent point inside the radius is returned unchanged,
          so the filter is a fixed point on its own output in that case
    """
    config = config or ConsistencyConfig()

    center = centroid(anchors)
    mean_deviation = mean_abs_deviation(position, anchors, distances)

    corrected = False
    result = np.array(position, dtype=float)
    if mean_deviation > config.max_mean_deviation_m:
        factor = min(config.max_correction, mean_deviation / config.deviation_scale_m)
        result = result * (1.0 - factor) + center * factor
        corrected = True

    clamped = False
    radius = max_reasonable_radius(anchors, config.radius_margin_m)
    offset = result - center
    dist = np.linalg.norm(offset)
    if dist > radius:
        result = center + offset / dist * radius
        clamped = True

    return ConsistencyResult(
        position=result,
        mean_deviation_m=mean_deviation,
        corrected=corrected,
        clamped=clamped,
    )
