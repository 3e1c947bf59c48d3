"""
UWB Measurement Synthesis.

Simulates the measurements a UWB fare gate would take for a passenger at
a known position: time of arrival at every anchor with thermal noise,
multipath delay and clock drift, the TDOA vector derived from it, and
the angle of arrival at the reference anchor.

Randomness comes only from the numpy Generator passed in, so calls with
independent generators can run concurrently.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import numpy as np

from fare_core.proto.measurement import MeasurementSet, SPEED_OF_LIGHT_M_S
from fare_core.localization.geometry import implied_distances

logger = logging.getLogger(__name__)


@dataclass
class MeasurementModelConfig:
    """
    Configuration for measurement synthesis.

    Attributes:
        force_high_precision: Replace caller noise parameters with the
            precision constants below
        precision_noise_level_m: Noise level used when forcing precision (m)
        precision_multipath_factor: Multipath factor used when forcing precision
        thermal_noise_scale: Fraction of noise_level applied as TOA noise
        multipath_scale: Fraction of multipath * max range applied as delay
        clock_drift_std_s: Clock drift standard deviation (s)
        aoa_noise_std_deg: Angle-of-arrival noise standard deviation (deg)
        noisy_ranges: Derive ranges from noisy TOA instead of true distances
    """

    force_high_precision: bool = True
    precision_noise_level_m: float = 0.0008    # 0.8mm
    precision_multipath_factor: float = 0.0012  # 1.2mm
    thermal_noise_scale: float = 0.1
    multipath_scale: float = 0.05
    clock_drift_std_s: float = 0.02e-9         # 0.02ns
    aoa_noise_std_deg: float = 0.1
    noisy_ranges: bool = False

    def __post_init__(self):
        """Validate configuration."""
        assert self.precision_noise_level_m >= 0, "precision noise level must be non-negative"
        assert self.precision_multipath_factor >= 0, "precision multipath factor must be non-negative"
        assert self.clock_drift_std_s >= 0, "clock drift std must be non-negative"
        assert self.aoa_noise_std_deg >= 0, "AoA noise std must be non-negative"


def synthesize_measurements(
    true_position: np.ndarray,
    anchors: np.ndarray,
    noise_level: float,
    multipath_factor: float,
    rng: np.random.Generator,
    config: Optional[MeasurementModelConfig] = None,
) -> MeasurementSet:
    """
    Synthesize noisy UWB measurements for a tag at true_position.

    Args:
        true_position: True (x, y) of the tag
        anchors: (N, 2) anchor positions, N >= 1
        noise_level: Caller measurement noise level (m)
        multipath_factor: Caller multipath interference factor
        rng: Random generator owned by the caller
        config: Model configuration (uses defaults if None)

    Returns:
        MeasurementSet with ranges, TDOA and AoA

    Notes:
        - With force_high_precision the caller's noise_level and
          multipath_factor are ignored
        - TOA noise = N(0, σ_thermal) + |N(0, σ_multipath)| + N(0, σ_clock)
    """
    config = config or MeasurementModelConfig()

    if config.force_high_precision:
        if noise_level != config.precision_noise_level_m or \
                multipath_factor != config.precision_multipath_factor:
            logger.debug(
                "Overriding noise_level=%s multipath_factor=%s with precision constants",
                noise_level, multipath_factor,
            )
        noise_level = config.precision_noise_level_m
        multipath_factor = config.precision_multipath_factor
    elif noise_level < 0 or multipath_factor < 0:
        raise ValueError(
            f"Noise parameters must be non-negative: {noise_level}, {multipath_factor}"
        )

    c = SPEED_OF_LIGHT_M_S
    distances = implied_distances(true_position, anchors)
    n = len(distances)

    true_toa = distances / c
    thermal = rng.normal(0.0, noise_level / c * config.thermal_noise_scale, n)
    multipath = np.abs(
        rng.normal(0.0, multipath_factor * np.max(distances) / c * config.multipath_scale, n)
    )
    clock_drift = rng.normal(0.0, config.clock_drift_std_s, n)
    noisy_toa = true_toa + thermal + multipath + clock_drift

    tdoa = noisy_toa[1:] - noisy_toa[0]

    true_angle = np.arctan2(
        true_position[1] - anchors[0, 1],
        true_position[0] - anchors[0, 0],
    )
    angle = true_angle + rng.normal(0.0, np.deg2rad(config.aoa_noise_std_deg))

    if config.noisy_ranges:
        ranges = np.maximum(noisy_toa * c, 0.0)
    else:
        ranges = distances

    return MeasurementSet(
        distances_m=ranges,
        tdoa_s=tdoa,
        angle_rad=float(angle),
        noise_level_m=float(noise_level),
        multipath_factor=float(multipath_factor),
    )
