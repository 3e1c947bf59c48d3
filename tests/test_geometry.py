"""
Unit tests for anchor geometry utilities and GDOP weighting.

Tests cover:
- Input normalization (points, anchor layouts)
- Centroid, implied ranges, spread
- GDOP weight fallbacks, clamping and monotonicity
- Signal quality formula
"""

import numpy as np
import pytest

from fare_core.localization.geometry import (
    as_point,
    as_anchor_array,
    centroid,
    implied_distances,
    distance_deviation,
    mean_abs_deviation,
    max_anchor_spread,
    gdop_weight,
    signal_quality,
    GDOP_FALLBACK_WEIGHT,
)
from fare_core.metrics import FallbackRecorder


class TestInputNormalization:
    """Tests for point and anchor conversion."""

    def test_as_point_accepts_tuple(self):
        """Test that a tuple becomes a float vector."""
        p = as_point((1, 2))
        assert p.dtype == float
        assert p.shape == (2,)

    def test_as_point_rejects_3d(self):
        """Test that a 3D point raises ValueError."""
        with pytest.raises(ValueError, match="shape"):
            as_point((1.0, 2.0, 3.0))

    def test_as_anchor_array_rejects_empty(self):
        """Test that an empty layout raises ValueError."""
        with pytest.raises(ValueError):
            as_anchor_array([])

    def test_as_anchor_array_rejects_bad_shape(self):
        """Test that 3D anchors raise ValueError."""
        with pytest.raises(ValueError, match="shape"):
            as_anchor_array([(0.0, 0.0, 1.0), (1.0, 0.0, 1.0)])


class TestGeometryHelpers:
    """Tests for centroid and range helpers."""

    def test_centroid(self, standard_anchors):
        """Test centroid of the standard layout."""
        np.testing.assert_allclose(centroid(standard_anchors), [7.5, 5.0])

    def test_implied_distances(self, square_anchors):
        """Test ranges from the square center."""
        d = implied_distances(np.array([5.0, 5.0]), square_anchors)
        np.testing.assert_allclose(d, [np.sqrt(50.0)] * 4)

    def test_deviation_zero_for_exact_ranges(self, square_anchors):
        """Test deviation helpers vanish for exact ranges."""
        p = np.array([3.0, 4.0])
        d = implied_distances(p, square_anchors)
        assert distance_deviation(p, square_anchors, d) == pytest.approx(0.0)
        assert mean_abs_deviation(p, square_anchors, d) == pytest.approx(0.0)

    def test_mean_abs_deviation(self, square_anchors):
        """Test mean absolute deviation with a constant range offset."""
        p = np.array([3.0, 4.0])
        d = implied_distances(p, square_anchors) + 0.1
        assert mean_abs_deviation(p, square_anchors, d) == pytest.approx(0.1)

    def test_max_anchor_spread(self, square_anchors):
        """Test spread of a square equals half its diagonal."""
        assert max_anchor_spread(square_anchors) == pytest.approx(np.sqrt(50.0))


class TestGDOPWeight:
    """Tests for the GDOP weight estimator."""

    def test_fewer_than_three_anchors(self):
        """Test fallback weight with 2 anchors."""
        anchors = np.array([(0.0, 0.0), (10.0, 0.0)])
        assert gdop_weight(anchors) == GDOP_FALLBACK_WEIGHT

    def test_collinear_anchors_fallback(self, collinear_anchors):
        """Test singular geometry gives the fallback weight."""
        recorder = FallbackRecorder()
        assert gdop_weight(collinear_anchors, recorder=recorder) == pytest.approx(0.8)
        assert recorder.reasons() == ('degenerate_geometry',)

    def test_standard_layout_weight(self, standard_anchors):
        """
        Test weight for the standard 5-anchor layout.

        GᵀG = [[506.25, 187.5], [187.5, 225]], trace of inverse 0.0092857.
        """
        expected = 1.0 / (1.0 + 0.01 * np.sqrt(731.25 / 78750.0))
        assert gdop_weight(standard_anchors, np.array([5.0, 3.0])) == pytest.approx(expected)

    def test_weight_clamped_low(self, near_collinear_anchors):
        """Test ill-conditioned geometry is clamped to 0.7."""
        assert gdop_weight(near_collinear_anchors) == pytest.approx(0.7)

    def test_weight_always_in_range(self, rng):
        """Test random layouts always yield weights in [0.7, 1.0]."""
        for _ in range(50):
            anchors = rng.uniform(-20, 20, size=(rng.integers(1, 8), 2))
            w = gdop_weight(anchors)
            assert 0.7 <= w <= 1.0

    def test_monotonicity_square_vs_near_collinear(self, square_anchors, near_collinear_anchors):
        """Test well-spread layout scores at least as well as near-collinear."""
        target = np.array([5.0, 5.0])
        assert gdop_weight(square_anchors, target) >= gdop_weight(near_collinear_anchors, target)

    def test_weight_independent_of_target(self, square_anchors):
        """Test the offset-based weight does not depend on the target."""
        assert gdop_weight(square_anchors, np.array([1.0, 1.0])) == \
            gdop_weight(square_anchors, np.array([9.0, 2.0]))


class TestSignalQuality:
    """Tests for the signal quality formula."""

    @pytest.mark.parametrize("weight,expected", [(0.7, 97.0), (0.8, 98.0), (1.0, 100.0)])
    def test_formula(self, weight, expected):
        """Test quality = 90 + 10 * weight."""
        assert signal_quality(weight) == pytest.approx(expected)
