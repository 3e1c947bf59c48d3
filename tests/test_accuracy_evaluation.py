"""
Tests for anchor layouts and Monte Carlo accuracy evaluation.
"""

import pytest

from fare_core.domain import (
    ANCHOR_LAYOUTS,
    STANDARD_5_ANCHOR,
    AccuracyEvaluator,
    EvaluationConfig,
    evaluate_all_layouts,
    get_layout,
)
from fare_core.metrics import FALLBACK_REASONS


class TestAnchorLayouts:
    """Tests for named anchor layouts."""

    def test_get_layout(self):
        """Test lookup by name."""
        assert get_layout('standard_5_anchor') == STANDARD_5_ANCHOR
        assert len(get_layout('maximum_9_anchor')) == 9

    def test_unknown_layout_raises(self):
        """Test unknown names list the known layouts."""
        with pytest.raises(KeyError, match='standard_5_anchor'):
            get_layout('hexagon')

    def test_layouts_have_enough_anchors(self):
        """Test every layout supports a full fix."""
        for anchors in ANCHOR_LAYOUTS.values():
            assert len(anchors) >= 3


class TestAccuracyEvaluator:
    """Tests for AccuracyEvaluator."""

    def test_standard_layout_accuracy(self):
        """Test the standard layout keeps nearly all fixes within 5cm."""
        evaluator = AccuracyEvaluator(EvaluationConfig(num_trials=100, seed=11))
        report = evaluator.evaluate('standard_5_anchor', STANDARD_5_ANCHOR)

        assert report.num_anchors == 5
        assert report.num_trials == 100
        assert report.within_5cm_percent >= 95.0
        assert report.within_10cm_percent >= report.within_5cm_percent
        assert report.success_rate_percent >= report.within_10cm_percent
        assert 90.0 <= report.min_signal_quality <= report.mean_signal_quality <= 100.0
        assert sum(report.method_counts.values()) == 100
        assert set(FALLBACK_REASONS) <= set(report.fallback_counts)
        assert 0.0 <= report.degraded_rate_percent <= 100.0

    def test_fixed_position(self):
        """Test a fixed true position gives repeatable low error."""
        config = EvaluationConfig(num_trials=20, fixed_position=(5.0, 3.0), seed=3)
        report = AccuracyEvaluator(config).evaluate('standard_5_anchor', STANDARD_5_ANCHOR)

        assert report.max_error_cm < 1.0
        assert report.percentile_95_cm <= report.max_error_cm
        assert report.refinement_rate_percent == 0.0
        assert report.degraded_rate_percent == 0.0
        assert sum(report.fallback_counts.values()) == 0

    def test_same_seed_same_report(self):
        """Test the seed makes a report reproducible."""
        config = EvaluationConfig(num_trials=30, seed=5)
        first = AccuracyEvaluator(config).evaluate('standard_5_anchor', STANDARD_5_ANCHOR)
        second = AccuracyEvaluator(config).evaluate('standard_5_anchor', STANDARD_5_ANCHOR)

        assert first.to_dict() == second.to_dict()

    def test_invalid_config(self):
        """Test configuration validation."""
        with pytest.raises(AssertionError):
            EvaluationConfig(num_trials=0)


class TestEvaluateAllLayouts:
    """Tests for evaluate_all_layouts."""

    def test_reports_for_every_layout(self):
        """Test one report per named layout."""
        reports = evaluate_all_layouts(EvaluationConfig(num_trials=10, seed=1))

        assert set(reports) == set(ANCHOR_LAYOUTS)
        for name, report in reports.items():
            assert report.layout_name == name
            assert report.num_anchors == len(ANCHOR_LAYOUTS[name])

    def test_custom_layouts(self):
        """Test a caller-supplied layout mapping."""
        layouts = {'square': [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]}
        reports = evaluate_all_layouts(EvaluationConfig(num_trials=10, seed=2), layouts)

        assert list(reports) == ['square']
        assert reports['square'].to_dict()['num_anchors'] == 4
