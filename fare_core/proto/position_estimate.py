"""
Position Estimate Output Schema.

Defines the result of one localization call. Fare and gate simulators
consume the position, the error magnitude and the signal quality.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from enum import IntEnum
import math


class FixType(IntEnum):
    """Type of position fix."""

    NO_FIX = 0          # No valid solution
    DEGENERATE = 1      # Fewer than 3 anchors, anchor centroid reported
    FIX_2D = 2          # Full multilateration pipeline ran


@dataclass
class PositionEstimate:
    """
    Passenger position estimate from the UWB positioning engine.

    Attributes:
        position: Estimated (x, y) in meters
        error_m: Distance between estimate and true position (m)
        signal_quality: Quality indicator in [0, 100]
        gdop_weight: Geometry confidence in [0.7, 1.0]
        fix_type: Type of fix (NO_FIX, DEGENERATE, FIX_2D)
        num_anchors: Number of anchors in the layout

        # Pipeline diagnostics
        selected_method: Name of the winning candidate estimator
        refined: True if the iterative refinement step ran
        consistency_corrected: True if the final filter pulled the estimate
        residual_m: Mean absolute deviation between implied and measured ranges
        fallbacks: Fallback reason codes taken, in pipeline order

    Notes:
        - signal_quality = 90 + 10 * gdop_weight for FIX_2D; it is a fixed
          formula, not a received-signal metric
        - DEGENERATE estimates carry a fixed low-confidence quality
    """

    position: Tuple[float, float]
    error_m: float
    signal_quality: float
    gdop_weight: float
    fix_type: FixType
    num_anchors: int

    # Optional diagnostics
    selected_method: Optional[str] = None
    refined: bool = False
    consistency_corrected: bool = False
    residual_m: Optional[float] = None
    fallbacks: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate position estimate."""
        if not 0 <= self.signal_quality <= 100:
            raise ValueError(f"Signal quality must be in [0,100]: {self.signal_quality}")

        if not 0 <= self.gdop_weight <= 1:
            raise ValueError(f"GDOP weight must be in [0,1]: {self.gdop_weight}")

        if self.error_m < 0:
            raise ValueError(f"Error cannot be negative: {self.error_m}")

        if self.num_anchors < 0:
            raise ValueError(f"Num anchors cannot be negative: {self.num_anchors}")

    @property
    def has_valid_fix(self) -> bool:
        """Check if the full pipeline produced this estimate."""
        return self.fix_type == FixType.FIX_2D

    @property
    def is_degenerate(self) -> bool:
        """Check if this is a centroid fallback for too few anchors."""
        return self.fix_type == FixType.DEGENERATE

    @property
    def is_degraded(self) -> bool:
        """True if any fallback was taken."""
        return bool(self.fallbacks)

    @property
    def is_finite(self) -> bool:
        """Check that both coordinates are finite numbers."""
        return all(math.isfinite(c) for c in self.position)

    @property
    def error_cm(self) -> float:
        """Localization error in centimeters."""
        return self.error_m * 100.0

    def as_tuple(self) -> Tuple[Tuple[float, float], float, float]:
        """Return (estimated_position, localization_error_m, signal_quality)."""
        return (self.position, self.error_m, self.signal_quality)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'position': self.position,
            'error_m': self.error_m,
            'signal_quality': self.signal_quality,
            'gdop_weight': self.gdop_weight,
            'fix_type': self.fix_type.name,
            'num_anchors': self.num_anchors,
            'selected_method': self.selected_method,
            'refined': self.refined,
            'consistency_corrected': self.consistency_corrected,
            'residual_m': self.residual_m,
            'fallbacks': list(self.fallbacks),
        }


def create_degenerate_estimate(
    centroid: Tuple[float, float],
    true_position: Tuple[float, float],
    num_anchors: int,
    signal_quality: float = 0.0,
    gdop_weight: float = 0.8,
) -> PositionEstimate:
    """
    Create a DEGENERATE estimate at the anchor centroid.

    Args:
        centroid: Anchor centroid (x, y)
        true_position: True tag position, used for the error
        num_anchors: Number of anchors supplied
        signal_quality: Fixed low-confidence quality
        gdop_weight: Fallback geometry weight

    Returns:
        PositionEstimate with DEGENERATE fix type
    """
    error = math.hypot(centroid[0] - true_position[0], centroid[1] - true_position[1])
    return PositionEstimate(
        position=(float(centroid[0]), float(centroid[1])),
        error_m=float(error),
        signal_quality=signal_quality,
        gdop_weight=gdop_weight,
        fix_type=FixType.DEGENERATE,
        num_anchors=num_anchors,
        selected_method='centroid',
        fallbacks=('insufficient_anchors',),
    )
