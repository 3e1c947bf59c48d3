"""
Iterative Position Refinement.

When the blended estimate looks too far off, runs a Gauss-Newton
minimization of sum((||p - a_i|| - d_i)²) seeded at the estimate,
clamps the result to the anchor bounding box (plus margin), and blends
it back with the pre-refinement estimate.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import logging
import numpy as np

from fare_core.localization.geometry import implied_distances, is_finite_point
from fare_core.metrics import FallbackRecorder

logger = logging.getLogger(__name__)


class NonConvergentRefinement(Exception):
    """Raised internally when the refinement iterate becomes unusable."""


class RefinementTrigger(Enum):
    """Condition that decides whether refinement runs."""

    GROUND_TRUTH = "ground_truth"  # Error vs true position (simulation only)
    RESIDUAL = "residual"          # RMS range residual (physically realizable)


@dataclass
class RefinementConfig:
    """
    Configuration for iterative refinement.

    Attributes:
        trigger: Which error measure decides whether refinement runs
        threshold_m: Refinement runs when the chosen error exceeds this (m)
        max_iterations: Maximum Gauss-Newton iterations
        step_tolerance_m: Stop when the update norm falls below this (m)
        cost_tolerance: Stop when the cost decrease falls below this (m²)
        damping: Diagonal damping added to JᵀJ
        bounds_margin_m: Margin around the anchor bounding box (m)
        refined_weight: Share of the refined position in the final blend
    """

    trigger: RefinementTrigger = RefinementTrigger.GROUND_TRUTH
    threshold_m: float = 0.05          # 5cm
    max_iterations: int = 1000
    step_tolerance_m: float = 1e-15
    cost_tolerance: float = 1e-15
    damping: float = 1e-9
    bounds_margin_m: float = 2.0
    refined_weight: float = 0.8

    def __post_init__(self):
        """Validate configuration."""
        assert self.threshold_m >= 0, "threshold must be non-negative"
        assert self.max_iterations > 0, "max_iterations must be positive"
        assert 0.0 <= self.refined_weight <= 1.0, "refined_weight must be in [0, 1]"
        assert self.bounds_margin_m >= 0, "bounds margin must be non-negative"


@dataclass
class RefinementResult:
    """
    Outcome of the refinement step.

    Attributes:
        position: Final (clamped, blended) position
        iterations: Gauss-Newton iterations run (0 if it failed at once)
        converged: True if a tolerance was met before the iteration cap
        failed: True if the solve was abandoned and the seed kept
    """

    position: np.ndarray
    iterations: int
    converged: bool
    failed: bool = False


def should_refine(
    position: np.ndarray,
    anchors: np.ndarray,
    distances: np.ndarray,
    true_position: Optional[np.ndarray],
    config: RefinementConfig,
) -> bool:
    """
    Decide whether refinement runs for this estimate.

    GROUND_TRUTH compares against the true tag position, which only a
    simulation knows; RESIDUAL uses the RMS range residual instead.
    """
    if config.trigger is RefinementTrigger.GROUND_TRUTH and true_position is not None:
        error = np.linalg.norm(position - true_position)
    else:
        residuals = implied_distances(position, anchors) - distances
        error = np.sqrt(np.mean(residuals ** 2))
    return bool(error > config.threshold_m)


def _range_cost(x: np.ndarray, anchors: np.ndarray, distances: np.ndarray) -> float:
    residuals = implied_distances(x, anchors) - distances
    return float(residuals @ residuals)


def gauss_newton(
    x_init: np.ndarray,
    anchors: np.ndarray,
    distances: np.ndarray,
    config: RefinementConfig,
) -> Tuple[np.ndarray, int, bool]:
    """
    Minimize the squared range residuals by Gauss-Newton.

    Returns:
        Tuple of (position, iterations, converged)

    Raises:
        NonConvergentRefinement: If an iterate becomes non-finite
    """
    x = np.array(x_init, dtype=float)
    if not is_finite_point(x):
        raise NonConvergentRefinement("non-finite seed")

    cost = _range_cost(x, anchors, distances)
    eye = np.eye(2)

    for iteration in range(config.max_iterations):
        diff = x - anchors
        computed = np.linalg.norm(diff, axis=1)
        residuals = computed - distances

        # Jacobian rows are unit vectors from anchor to estimate
        jacobian = np.zeros_like(diff)
        nonzero = computed > 1e-6
        jacobian[nonzero] = diff[nonzero] / computed[nonzero, None]

        JTJ = jacobian.T @ jacobian
        JTr = jacobian.T @ residuals

        try:
            delta_x = np.linalg.solve(JTJ + config.damping * eye, -JTr)
        except np.linalg.LinAlgError:
            delta_x = np.linalg.lstsq(JTJ, -JTr, rcond=None)[0]

        x_new = x + delta_x
        if not is_finite_point(x_new):
            raise NonConvergentRefinement(f"non-finite iterate at iteration {iteration}")

        new_cost = _range_cost(x_new, anchors, distances)
        if new_cost > cost:
            # Step increased the cost, keep the better point
            return x, iteration + 1, True

        x = x_new
        improvement = cost - new_cost
        cost = new_cost

        if np.linalg.norm(delta_x) < config.step_tolerance_m or improvement < config.cost_tolerance:
            return x, iteration + 1, True

    return x, config.max_iterations, False


def clamp_to_anchor_bounds(position: np.ndarray, anchors: np.ndarray, margin: float) -> np.ndarray:
    """Clamp each axis to [min(anchor) - margin, max(anchor) + margin]."""
    lower = anchors.min(axis=0) - margin
    upper = anchors.max(axis=0) + margin
    return np.clip(position, lower, upper)


def refine_position(
    position: np.ndarray,
    anchors: np.ndarray,
    distances: np.ndarray,
    config: Optional[RefinementConfig] = None,
    recorder: Optional[FallbackRecorder] = None,
) -> RefinementResult:
    """
    Refine an estimate against the measured ranges.

    Args:
        position: Blended estimate used as the seed
        anchors: (N, 2) anchor positions
        distances: Measured ranges
        config: Refinement configuration (uses defaults if None)
        recorder: Receives nonconvergent_refinement if the solve fails

    Returns:
        RefinementResult

    Notes:
        - If the solve fails the seed stands in for the solution, so the
          result is still clamped to the anchor bounds and blended
    """
    config = config or RefinementConfig()
    recorder = recorder if recorder is not None else FallbackRecorder()
    seed = np.array(position, dtype=float)

    failed = False
    try:
        refined, iterations, converged = gauss_newton(seed, anchors, distances, config)
    except NonConvergentRefinement as e:
        recorder.record('nonconvergent_refinement')
        logger.debug("Refinement abandoned: %s", e)
        refined, iterations, converged, failed = seed, 0, False, True

    refined = clamp_to_anchor_bounds(refined, anchors, config.bounds_margin_m)
    blended = refined * config.refined_weight + seed * (1.0 - config.refined_weight)

    return RefinementResult(
        position=blended,
        iterations=iterations,
        converged=converged,
        failed=failed,
    )
