"""
Unit tests for iterative refinement.

Tests cover:
- Trigger decision (ground truth and residual)
- Gauss-Newton convergence on exact ranges
- Bounding-box clamp and 80/20 blend
- Non-convergent refinement falls back to the seed
"""

import numpy as np
import pytest

from fare_core.localization.refinement import (
    RefinementConfig,
    RefinementTrigger,
    clamp_to_anchor_bounds,
    gauss_newton,
    refine_position,
    should_refine,
)
from fare_core.metrics import FallbackRecorder
from tests.conftest import exact_measurements


class TestShouldRefine:
    """Tests for the refinement trigger."""

    def test_ground_truth_below_threshold(self, square_anchors):
        """Test a 3cm error does not trigger refinement."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        assert not should_refine(
            np.array([3.03, 4.0]), square_anchors, d, np.array([3.0, 4.0]), RefinementConfig()
        )

    def test_ground_truth_above_threshold(self, square_anchors):
        """Test a 10cm error triggers refinement."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        assert should_refine(
            np.array([3.1, 4.0]), square_anchors, d, np.array([3.0, 4.0]), RefinementConfig()
        )

    def test_residual_trigger_ignores_truth(self, square_anchors):
        """Test residual trigger uses range consistency, not the true position."""
        config = RefinementConfig(trigger=RefinementTrigger.RESIDUAL)
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m

        # Consistent estimate, far from the (wrong) truth
        assert not should_refine(
            np.array([3.0, 4.0]), square_anchors, d, np.array([8.0, 8.0]), config
        )
        # Inconsistent ranges
        assert should_refine(
            np.array([3.0, 4.0]), square_anchors, d + 0.2, np.array([3.0, 4.0]), config
        )

    def test_without_truth_uses_residual(self, square_anchors):
        """Test ground-truth trigger falls back to residual when truth is unknown."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        assert not should_refine(np.array([3.0, 4.0]), square_anchors, d, None, RefinementConfig())


class TestGaussNewton:
    """Tests for the Gauss-Newton solver."""

    def test_converges_to_true_position(self, square_anchors):
        """Test exact ranges converge from a nearby seed."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        x, iterations, converged = gauss_newton(
            np.array([3.5, 4.5]), square_anchors, d, RefinementConfig()
        )
        np.testing.assert_allclose(x, [3.0, 4.0], atol=1e-7)
        assert converged
        assert 1 <= iterations < 1000

    def test_iteration_cap(self, square_anchors):
        """Test the iteration cap bounds the solve."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        config = RefinementConfig(max_iterations=1, step_tolerance_m=0.0, cost_tolerance=0.0)
        _, iterations, _ = gauss_newton(np.array([6.0, 6.0]), square_anchors, d, config)
        assert iterations == 1


class TestRefinePosition:
    """Tests for refine_position."""

    def test_clamp_to_bounds(self, square_anchors):
        """Test per-axis clamp with 2m margin."""
        result = clamp_to_anchor_bounds(np.array([50.0, -50.0]), square_anchors, 2.0)
        np.testing.assert_allclose(result, [12.0, -2.0])

    def test_blend_with_input(self, square_anchors):
        """Test output is 80% refined, 20% input."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        seed = np.array([3.5, 4.5])

        result = refine_position(seed, square_anchors, d)

        np.testing.assert_allclose(result.position, 0.8 * np.array([3.0, 4.0]) + 0.2 * seed, atol=1e-6)
        assert not result.failed

    def test_refined_point_clamped(self, square_anchors):
        """Test a solution outside the bounding box is clamped before blending."""
        true_pos = (20.0, 5.0)
        d = exact_measurements(true_pos, square_anchors).distances_m
        seed = np.array([19.0, 5.0])

        result = refine_position(seed, square_anchors, d)

        expected = 0.8 * np.array([12.0, 5.0]) + 0.2 * seed
        np.testing.assert_allclose(result.position, expected, atol=1e-6)

    def test_nonconvergent_keeps_seed(self, square_anchors):
        """Test an unusable seed is kept and the failure recorded."""
        d = exact_measurements((3.0, 4.0), square_anchors).distances_m
        seed = np.array([np.nan, 4.0])
        recorder = FallbackRecorder()

        result = refine_position(seed, square_anchors, d, recorder=recorder)

        assert result.failed
        assert result.iterations == 0
        assert np.isnan(result.position[0])
        assert result.position[1] == pytest.approx(4.0)
        assert recorder.reasons() == ('nonconvergent_refinement',)

    def test_nonconvergent_seed_still_clamped(self, square_anchors):
        """Test a failed solve clamps and blends the seed like a solution."""
        d = np.array([np.inf, 5.0, 5.0, 5.0])
        seed = np.array([50.0, -50.0])

        result = refine_position(seed, square_anchors, d)

        assert result.failed
        expected = 0.8 * np.array([12.0, -2.0]) + 0.2 * seed
        np.testing.assert_allclose(result.position, expected)

    def test_config_validation(self):
        """Test invalid refinement config is rejected."""
        with pytest.raises(AssertionError):
            RefinementConfig(max_iterations=0)
