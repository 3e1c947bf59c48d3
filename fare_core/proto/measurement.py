"""
UWB Measurement Set Schema.

Bundles the per-anchor measurements synthesized for one localization
call: ranges, time differences of arrival and the angle of arrival at
the reference anchor.
"""

from dataclasses import dataclass
import numpy as np

# Propagation speed used to convert between time of arrival and range (m/s)
SPEED_OF_LIGHT_M_S = 299_792_458.0


@dataclass
class MeasurementSet:
    """
    Measurements for one tag position against one anchor layout.
    
    Attributes:
        distances_m: Range to each anchor (m), index-aligned with anchors
        tdoa_s: TOA of anchors 1..N-1 minus TOA of anchor 0 (s)
        angle_rad: Bearing from anchor 0 to the tag (rad)
        noise_level_m: Measurement noise level actually used (m)
        multipath_factor: Multipath factor actually used
        
    Notes:
        - len(tdoa_s) == len(distances_m) - 1
        - The noise fields record the effective values, which differ
          from the caller's when high precision is forced
    """
    
    distances_m: np.ndarray
    tdoa_s: np.ndarray
    angle_rad: float
    noise_level_m: float = 0.0
    multipath_factor: float = 0.0
    
    def __post_init__(self):
        """Validate measurement set after initialization."""
        self.distances_m = np.asarray(self.distances_m, dtype=float)
        self.tdoa_s = np.asarray(self.tdoa_s, dtype=float)
        
        if self.distances_m.ndim != 1:
            raise ValueError(f"Distances must be a vector: shape {self.distances_m.shape}")
        
        if np.any(self.distances_m < 0):
            raise ValueError(f"Distances cannot be negative: {self.distances_m}")
        
        expected = max(len(self.distances_m) - 1, 0)
        if self.tdoa_s.shape != (expected,):
            raise ValueError(
                f"Expected {expected} time differences, got shape {self.tdoa_s.shape}"
            )
    
    @property
    def num_anchors(self) -> int:
        """Number of anchors measured."""
        return len(self.distances_m)
    
    @property
    def range_differences_m(self) -> np.ndarray:
        """TDOA converted to range differences (m)."""
        return self.tdoa_s * SPEED_OF_LIGHT_M_S
    
    @classmethod
    def from_distances(cls, distances_m) -> "MeasurementSet":
        """
        Build a noise-free measurement set from ranges alone.
        
        TDOA is derived from the ranges and the angle is left at zero.
        """
        distances = np.asarray(distances_m, dtype=float)
        toa = distances / SPEED_OF_LIGHT_M_S
        tdoa = toa[1:] - toa[0] if len(toa) else toa
        return cls(distances_m=distances, tdoa_s=tdoa, angle_rad=0.0)
