"""
Localization Module: UWB multilateration pipeline.

Key classes:
- LocalizationEngine: Measurement synthesis + candidate pipeline
- WeightedLeastSquaresEstimator, TdoaEstimator, CircleIntersectionEstimator:
  candidate position estimators behind the PositionEstimator interface
- FallbackChain: Ordered strategies for ill-conditioned input
"""

from .geometry import (
    gdop_weight,
    signal_quality,
    centroid,
    implied_distances,
)
from .measurement_model import (
    MeasurementModelConfig,
    synthesize_measurements,
)
from .estimators import (
    PositionEstimator,
    FallbackChain,
    WeightedLeastSquaresEstimator,
    TdoaEstimator,
    CircleIntersectionEstimator,
    default_estimators,
    solve_three_anchor,
)
from .candidate_selector import (
    CandidateSelection,
    select_candidate,
    blend_toward_centroid,
)
from .refinement import (
    RefinementConfig,
    RefinementResult,
    RefinementTrigger,
    refine_position,
)
from .consistency_filter import (
    ConsistencyConfig,
    ConsistencyResult,
    apply_consistency_filter,
)
from .engine import (
    LocalizationEngine,
    EngineConfig,
    create_default_engine,
    localize,
)

__all__ = [
    # Geometry
    'gdop_weight',
    'signal_quality',
    'centroid',
    'implied_distances',
    # Measurements
    'MeasurementModelConfig',
    'synthesize_measurements',
    # Candidate estimators
    'PositionEstimator',
    'FallbackChain',
    'WeightedLeastSquaresEstimator',
    'TdoaEstimator',
    'CircleIntersectionEstimator',
    'default_estimators',
    'solve_three_anchor',
    # Selection and blending
    'CandidateSelection',
    'select_candidate',
    'blend_toward_centroid',
    # Refinement
    'RefinementConfig',
    'RefinementResult',
    'RefinementTrigger',
    'refine_position',
    # Consistency filter
    'ConsistencyConfig',
    'ConsistencyResult',
    'apply_consistency_filter',
    # Engine
    'LocalizationEngine',
    'EngineConfig',
    'create_default_engine',
    'localize',
]
