"""
Domain Module: Station layouts and accuracy evaluation.

Implements:
- Named anchor layouts used by the metro/bus/launch gate simulators
- Monte Carlo accuracy evaluation of the positioning engine
"""

from .anchor_layouts import (
    ANCHOR_LAYOUTS,
    STANDARD_5_ANCHOR,
    ENHANCED_7_ANCHOR,
    MAXIMUM_9_ANCHOR,
    SELF_TEST_4_ANCHOR,
    get_layout,
)
from .accuracy_evaluation import (
    AccuracyEvaluator,
    AccuracyReport,
    EvaluationConfig,
    evaluate_all_layouts,
)

__all__ = [
    'ANCHOR_LAYOUTS',
    'STANDARD_5_ANCHOR',
    'ENHANCED_7_ANCHOR',
    'MAXIMUM_9_ANCHOR',
    'SELF_TEST_4_ANCHOR',
    'get_layout',
    'AccuracyEvaluator',
    'AccuracyReport',
    'EvaluationConfig',
    'evaluate_all_layouts',
]
