"""
Candidate Position Estimators.

Three independent estimators produce candidate positions from the same
measurement set:

- WeightedLeastSquaresEstimator: linearized trilateration over all anchors
- TdoaEstimator: linear solve of range-difference equations
- CircleIntersectionEstimator: radical-line intersection of the first
  two range circles, disambiguated by the third

Each estimator is a FallbackChain of strategies tried in order. A
strategy returns None when it cannot solve (singular matrix, circles
that do not intersect); the next one is then tried, ending in a
centroid strategy that always succeeds.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple
import logging
import numpy as np

from fare_core.proto.measurement import MeasurementSet
from fare_core.localization.geometry import centroid
from fare_core.metrics import FallbackRecorder

logger = logging.getLogger(__name__)

SINGULAR_DET_THRESHOLD = 1e-15
WLS_WEIGHT_EPSILON = 1e-3
CIRCLE_TOLERANCE_M = 1e-3
TDOA_MAX_EQUATIONS = 3

# A strategy maps (anchors, measurements) to a position or None
Strategy = Callable[[np.ndarray, MeasurementSet], Optional[np.ndarray]]


class FallbackChain:
    """
    Ordered list of named strategies tried until one produces a position.

    Usage:
        chain = FallbackChain([
            ('wls', solve_weighted_normal_equations),
            ('closed_form', closed_form_on_first_three),
            ('centroid', centroid_of_first_three),
        ])
        position, used = chain.run(anchors, measurements)
    """

    def __init__(self, strategies: List[Tuple[str, Strategy]], fallback_reason: str = 'singular_system'):
        if not strategies:
            raise ValueError("FallbackChain needs at least one strategy")
        self.strategies = strategies
        self.fallback_reason = fallback_reason

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.strategies]

    def run(
        self,
        anchors: np.ndarray,
        measurements: MeasurementSet,
        recorder: Optional[FallbackRecorder] = None,
    ) -> Tuple[np.ndarray, str]:
        """
        Run strategies in order, recording one fallback per rejection.

        Returns:
            Tuple of (position, name of the strategy that produced it)
        """
        recorder = recorder if recorder is not None else FallbackRecorder()
        for name, strategy in self.strategies[:-1]:
            try:
                result = strategy(anchors, measurements)
            except np.linalg.LinAlgError:
                result = None
            if result is not None:
                return result, name
            recorder.record(self.fallback_reason)
            logger.debug("Strategy '%s' could not solve, falling back", name)

        name, strategy = self.strategies[-1]
        return strategy(anchors, measurements), name


# =============================================================================
# Shared strategies
# =============================================================================


def solve_three_anchor(anchors: np.ndarray, distances: np.ndarray) -> Optional[np.ndarray]:
    """
    Closed-form 2D trilateration from three anchors.

    Subtracts the first range equation from the other two, giving the
    2x2 linear system 2(a_i - a_1) . p = r_1² - r_i² + |a_i|² - |a_1|².

    Returns:
        Position, or None if the three anchors are collinear
    """
    (x1, y1), (x2, y2), (x3, y3) = anchors[:3]
    r1, r2, r3 = distances[:3]

    A = 2.0 * np.array([
        [x2 - x1, y2 - y1],
        [x3 - x1, y3 - y1],
    ])
    b = np.array([
        r1**2 - r2**2 + x2**2 - x1**2 + y2**2 - y1**2,
        r1**2 - r3**2 + x3**2 - x1**2 + y3**2 - y1**2,
    ])

    if abs(np.linalg.det(A)) <= SINGULAR_DET_THRESHOLD:
        return None
    return np.linalg.solve(A, b)


def closed_form_on_first_three(anchors: np.ndarray, measurements: MeasurementSet) -> Optional[np.ndarray]:
    return solve_three_anchor(anchors, measurements.distances_m)


def centroid_of_first_three(anchors: np.ndarray, measurements: MeasurementSet) -> np.ndarray:
    return centroid(anchors[:3])


def centroid_of_all(anchors: np.ndarray, measurements: MeasurementSet) -> np.ndarray:
    return centroid(anchors)


# =============================================================================
# Estimator-specific strategies
# =============================================================================


def solve_weighted_normal_equations(anchors: np.ndarray, measurements: MeasurementSet) -> Optional[np.ndarray]:
    """
    Weighted least squares over the linearized range equations.

    Row i (i >= 1) is anchor 0's squared-range equation minus anchor i's.
    Weights are 1 / (d_i³ + ε), so near anchors dominate.
    """
    d = measurements.distances_m
    x0, y0 = anchors[0]
    xi, yi = anchors[1:, 0], anchors[1:, 1]

    A = np.column_stack([2.0 * (xi - x0), 2.0 * (yi - y0)])
    b = d[0]**2 - d[1:]**2 + xi**2 - x0**2 + yi**2 - y0**2
    W = np.diag(1.0 / (d[1:]**3 + WLS_WEIGHT_EPSILON))

    ATWA = A.T @ W @ A
    if np.linalg.det(ATWA) <= SINGULAR_DET_THRESHOLD:
        return None
    return np.linalg.solve(ATWA, A.T @ W @ b)


def solve_tdoa_linear(anchors: np.ndarray, measurements: MeasurementSet) -> Optional[np.ndarray]:
    """
    Least-squares solve of the first (up to 3) range-difference equations.

    Range differences are TDOA times the propagation speed, referenced
    to anchor 0.
    """
    range_diffs = measurements.range_differences_m
    n_eq = min(len(range_diffs), TDOA_MAX_EQUATIONS, len(anchors) - 1)
    if n_eq < 2:
        return None

    x0, y0 = anchors[0]
    xi, yi = anchors[1:n_eq + 1, 0], anchors[1:n_eq + 1, 1]
    rd = range_diffs[:n_eq]

    A = np.column_stack([xi - x0, yi - y0])
    b = 0.5 * (rd**2 - xi**2 + x0**2 - yi**2 + y0**2)

    ATA = A.T @ A
    if np.linalg.det(ATA) <= SINGULAR_DET_THRESHOLD:
        return None
    return np.linalg.solve(ATA, A.T @ b)


def solve_circle_intersection(anchors: np.ndarray, measurements: MeasurementSet) -> Optional[np.ndarray]:
    """
    Intersect circles 1 and 2 along their radical line.

    Of the two intersection points, the one whose range to anchor 3
    best matches r3 is kept (ties go to the second point).

    Returns:
        Position, or None if the circles are concentric, tangent,
        or do not intersect
    """
    (x1, y1), (x2, y2), (x3, y3) = anchors[:3]
    r1, r2, r3 = measurements.distances_m[:3]

    d = np.hypot(x2 - x1, y2 - y1)
    if d <= CIRCLE_TOLERANCE_M \
            or abs(r1 + r2 - d) <= CIRCLE_TOLERANCE_M \
            or abs(abs(r1 - r2) - d) <= CIRCLE_TOLERANCE_M:
        return None

    a = (r1**2 - r2**2 + d**2) / (2.0 * d)
    h_squared = r1**2 - a**2
    if h_squared < 0:
        return None
    h = np.sqrt(h_squared)

    # Foot of the radical line on the center line
    px = x1 + a * (x2 - x1) / d
    py = y1 + a * (y2 - y1) / d

    pos1 = np.array([px + h * (y2 - y1) / d, py - h * (x2 - x1) / d])
    pos2 = np.array([px - h * (y2 - y1) / d, py + h * (x2 - x1) / d])

    third = np.array([x3, y3])
    error1 = abs(np.linalg.norm(pos1 - third) - r3)
    error2 = abs(np.linalg.norm(pos2 - third) - r3)

    return pos1 if error1 < error2 else pos2


# =============================================================================
# Estimators
# =============================================================================


class PositionEstimator(ABC):
    """
    Produces one candidate position from anchors and measurements.

    Implementations must not raise on finite input with N >= 3 anchors;
    ill-conditioned input degrades through the estimator's fallback chain.
    """

    name: str = "estimator"

    @abstractmethod
    def estimate(
        self,
        anchors: np.ndarray,
        measurements: MeasurementSet,
        recorder: Optional[FallbackRecorder] = None,
    ) -> np.ndarray:
        """Return the candidate (x, y), recording any fallback taken."""


class ChainedEstimator(PositionEstimator):
    """Estimator whose behavior is a fixed FallbackChain."""

    chain: FallbackChain

    def estimate_with_strategy(
        self,
        anchors: np.ndarray,
        measurements: MeasurementSet,
        recorder: Optional[FallbackRecorder] = None,
    ) -> Tuple[np.ndarray, str]:
        """Return the candidate and the name of the strategy that produced it."""
        position, used = self.chain.run(anchors, measurements, recorder)
        return np.asarray(position, dtype=float), used

    def estimate(self, anchors, measurements, recorder=None) -> np.ndarray:
        return self.estimate_with_strategy(anchors, measurements, recorder)[0]


class WeightedLeastSquaresEstimator(ChainedEstimator):
    """Inverse-cube range weighted least squares over all anchors."""

    name = "wls"

    def __init__(self):
        self.chain = FallbackChain([
            ('weighted_normal_equations', solve_weighted_normal_equations),
            ('closed_form', closed_form_on_first_three),
            ('centroid', centroid_of_first_three),
        ])


class TdoaEstimator(ChainedEstimator):
    """Linear TDOA positioning referenced to anchor 0."""

    name = "tdoa"

    def __init__(self):
        self.chain = FallbackChain([
            ('tdoa_linear', solve_tdoa_linear),
            ('centroid', centroid_of_all),
        ])


class CircleIntersectionEstimator(ChainedEstimator):
    """Analytic intersection of the first three range circles."""

    name = "circle_intersection"

    def __init__(self):
        self.chain = FallbackChain([
            ('radical_line', solve_circle_intersection),
            ('closed_form', closed_form_on_first_three),
            ('centroid', centroid_of_first_three),
        ], fallback_reason='degenerate_circles')


def default_estimators() -> List[PositionEstimator]:
    """Candidate estimators in selection order (first wins ties)."""
    return [
        WeightedLeastSquaresEstimator(),
        TdoaEstimator(),
        CircleIntersectionEstimator(),
    ]
