"""
UWB Positioning Engine.

Entry point used by the fare and gate simulators. One call takes a true
passenger position and an anchor layout, synthesizes UWB measurements
and runs the positioning pipeline:

1. GDOP weight from the anchor geometry
2. Candidate estimators (WLS, TDOA, circle intersection)
3. Candidate selection by range consistency
4. Blend toward the anchor centroid by GDOP weight
5. Iterative refinement when the estimate is too far off
6. Final consistency filter and radius clamp

Usage:
    engine = LocalizationEngine()
    rng = np.random.default_rng(7)

    estimate = engine.localize((5.0, 3.0), STANDARD_5_ANCHOR, 0.05, 0.02, rng=rng)
    print(f"Error: {estimate.error_cm:.2f} cm, quality {estimate.signal_quality:.1f}")

    # Or the plain tuple interface
    position, error_m, quality = localize((5.0, 3.0), STANDARD_5_ANCHOR, 0.05, 0.02)

The engine holds only configuration, so one instance may be shared
across threads as long as each thread passes its own Generator.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging
import numpy as np

from fare_core.proto.measurement import MeasurementSet
from fare_core.proto.position_estimate import (
    PositionEstimate,
    FixType,
    create_degenerate_estimate,
)
from fare_core.localization.geometry import (
    as_anchor_array,
    as_point,
    centroid,
    gdop_weight,
    is_finite_point,
    signal_quality,
)
from fare_core.localization.measurement_model import (
    MeasurementModelConfig,
    synthesize_measurements,
)
from fare_core.localization.estimators import PositionEstimator, default_estimators
from fare_core.localization.candidate_selector import (
    CandidateSelection,
    blend_toward_centroid,
    select_candidate,
)
from fare_core.localization.refinement import (
    RefinementConfig,
    RefinementTrigger,
    refine_position,
    should_refine,
)
from fare_core.localization.consistency_filter import (
    ConsistencyConfig,
    apply_consistency_filter,
)
from fare_core.metrics import FallbackRecorder

logger = logging.getLogger(__name__)

MIN_ANCHORS = 3


@dataclass
class EngineConfig:
    """
    Configuration for the positioning engine.

    Attributes:
        measurement_config: Measurement synthesis configuration
        refinement_config: Iterative refinement configuration
        consistency_config: Final consistency filter configuration
        degenerate_quality: Signal quality reported with fewer than 3 anchors
    """

    measurement_config: MeasurementModelConfig = field(default_factory=MeasurementModelConfig)
    refinement_config: RefinementConfig = field(default_factory=RefinementConfig)
    consistency_config: ConsistencyConfig = field(default_factory=ConsistencyConfig)
    degenerate_quality: float = 0.0

    def __post_init__(self):
        """Validate configuration."""
        assert 0.0 <= self.degenerate_quality <= 100.0, "degenerate quality must be in [0, 100]"

    @property
    def force_high_precision(self) -> bool:
        return self.measurement_config.force_high_precision


class LocalizationEngine:
    """
    Multi-candidate UWB positioning engine.

    Features:
    - Never raises for numerical trouble; every failure has a fallback,
      recorded as a reason code on the returned estimate
    - Fewer than 3 anchors -> anchor centroid with fixed low quality
    - Explicit random Generator per call for reproducible trials
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        estimators: Optional[List[PositionEstimator]] = None,
    ):
        """
        Initialize engine.

        Args:
            config: Engine configuration (uses defaults if None)
            estimators: Candidate estimators in selection order
                (defaults to WLS, TDOA, circle intersection)
        """
        self.config = config or EngineConfig()
        self.estimators = estimators if estimators is not None else default_estimators()

    def localize(
        self,
        true_position: Sequence[float],
        anchors: Sequence,
        noise_level: float,
        multipath_factor: float,
        rng: Optional[np.random.Generator] = None,
    ) -> PositionEstimate:
        """
        Estimate the position of a tag from synthesized UWB measurements.

        Args:
            true_position: True (x, y) of the tag (m)
            anchors: Anchor layout, sequence of (x, y) (m)
            noise_level: Measurement noise level (overridden when
                high precision is forced)
            multipath_factor: Multipath factor (overridden when high
                precision is forced)
            rng: Random generator (a fresh unseeded one if None)

        Returns:
            PositionEstimate

        Raises:
            ValueError: If the inputs are not 2D points or the layout is empty
        """
        p_true = as_point(true_position)
        anchor_arr = as_anchor_array(anchors)
        rng = rng if rng is not None else np.random.default_rng()

        if len(anchor_arr) < MIN_ANCHORS:
            logger.debug("Only %d anchors, returning anchor centroid", len(anchor_arr))
            return create_degenerate_estimate(
                tuple(centroid(anchor_arr)),
                tuple(p_true),
                len(anchor_arr),
                signal_quality=self.config.degenerate_quality,
            )

        measurements = synthesize_measurements(
            p_true, anchor_arr, noise_level, multipath_factor, rng,
            self.config.measurement_config,
        )

        return self.estimate_from_measurements(anchor_arr, measurements, p_true)

    def estimate_from_measurements(
        self,
        anchors: np.ndarray,
        measurements: MeasurementSet,
        true_position: Optional[np.ndarray] = None,
    ) -> PositionEstimate:
        """
        Run the positioning pipeline on an existing measurement set.

        Args:
            anchors: (N, 2) anchor positions, N >= 3
            measurements: Ranges, TDOA and AoA for the anchors
            true_position: True tag position; required for the error
                and for the ground-truth refinement trigger

        Returns:
            PositionEstimate (error_m is 0.0 when true_position is None)
        """
        anchors = as_anchor_array(anchors)
        if measurements.num_anchors != len(anchors):
            raise ValueError(
                f"{measurements.num_anchors} ranges for {len(anchors)} anchors"
            )
        if len(anchors) < MIN_ANCHORS:
            raise ValueError(f"Pipeline needs at least {MIN_ANCHORS} anchors")

        recorder = FallbackRecorder()
        distances = measurements.distances_m
        weight = gdop_weight(anchors, true_position, recorder)

        # Stages 2-3: candidates and selection
        selection = self._select(anchors, measurements, recorder)
        position = selection.position
        if not is_finite_point(position):
            recorder.record('non_finite_estimate')
            logger.warning("No finite candidate estimate, using anchor centroid")
            position = centroid(anchors)

        # Stage 4: geometry-aware blend
        position = blend_toward_centroid(position, anchors, weight)

        # Stage 5: refinement
        refined = False
        refinement_config = self.config.refinement_config
        if should_refine(position, anchors, distances, true_position, refinement_config):
            position = refine_position(
                position, anchors, distances, refinement_config, recorder
            ).position
            refined = True

        # Stage 6: consistency filter
        consistency = apply_consistency_filter(
            position, anchors, distances, self.config.consistency_config
        )
        position = consistency.position

        error = 0.0
        if true_position is not None:
            error = float(np.linalg.norm(position - true_position))

        return PositionEstimate(
            position=(float(position[0]), float(position[1])),
            error_m=error,
            signal_quality=signal_quality(weight),
            gdop_weight=weight,
            fix_type=FixType.FIX_2D,
            num_anchors=len(anchors),
            selected_method=selection.method,
            refined=refined,
            consistency_corrected=consistency.corrected,
            residual_m=consistency.mean_deviation_m,
            fallbacks=recorder.reasons(),
        )

    def _select(
        self,
        anchors: np.ndarray,
        measurements: MeasurementSet,
        recorder: FallbackRecorder,
    ) -> CandidateSelection:
        candidates: List[Tuple[str, np.ndarray]] = [
            (estimator.name, estimator.estimate(anchors, measurements, recorder))
            for estimator in self.estimators
        ]
        return select_candidate(candidates, anchors, measurements.distances_m, recorder)


def create_default_engine(
    force_high_precision: bool = True,
    refinement_trigger: RefinementTrigger = RefinementTrigger.GROUND_TRUTH,
) -> LocalizationEngine:
    """
    Create engine with default configuration.

    Args:
        force_high_precision: Replace caller noise parameters with the
            ultra-low-noise precision constants
        refinement_trigger: Condition deciding whether refinement runs

    Returns:
        LocalizationEngine
    """
    config = EngineConfig(
        measurement_config=MeasurementModelConfig(force_high_precision=force_high_precision),
        refinement_config=RefinementConfig(trigger=refinement_trigger),
    )
    return LocalizationEngine(config)


_default_engine: Optional[LocalizationEngine] = None


def localize(
    true_position: Sequence[float],
    anchors: Sequence,
    noise_level: float,
    multipath_factor: float,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Tuple[float, float], float, float]:
    """
    Tuple interface to the default engine.

    Returns:
        (estimated_position, localization_error_m, signal_quality)
    """
    global _default_engine
    if _default_engine is None:
        _default_engine = LocalizationEngine()
    return _default_engine.localize(
        true_position, anchors, noise_level, multipath_factor, rng=rng
    ).as_tuple()
