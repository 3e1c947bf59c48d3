"""
Monte Carlo Accuracy Evaluation.

Runs the positioning engine repeatedly over one anchor layout and
aggregates error and quality statistics the way the fare system's
technical report presents them (errors in cm, share of fixes within
5cm / 10cm, mean signal quality).

Usage:
    evaluator = AccuracyEvaluator(EvaluationConfig(num_trials=200, seed=7))
    report = evaluator.evaluate('standard_5_anchor', STANDARD_5_ANCHOR)
    print(f"<5cm: {report.within_5cm_percent:.1f}%")
"""

from collections import Counter
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Sequence, Tuple, Any
import logging
import numpy as np

from fare_core.localization.engine import LocalizationEngine
from fare_core.domain.anchor_layouts import ANCHOR_LAYOUTS
from fare_core.metrics import FallbackTally

logger = logging.getLogger(__name__)


@dataclass
class EvaluationConfig:
    """
    Configuration for accuracy evaluation.

    Attributes:
        num_trials: Number of localize calls per layout
        noise_level: Noise level passed to the engine (m)
        multipath_factor: Multipath factor passed to the engine
        fixed_position: Evaluate at this position instead of random ones
        success_threshold_m: Error below which a tap counts as detected (m)
        seed: Seed for the evaluation's random generator (None = random)
    """

    num_trials: int = 200
    noise_level: float = 0.02
    multipath_factor: float = 0.01
    fixed_position: Optional[Tuple[float, float]] = None
    success_threshold_m: float = 0.25  # 25cm
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate configuration."""
        assert self.num_trials > 0, "num_trials must be positive"
        assert self.success_threshold_m > 0, "success threshold must be positive"


@dataclass
class AccuracyReport:
    """Aggregated accuracy statistics for one layout."""

    layout_name: str
    num_anchors: int
    num_trials: int
    mean_error_cm: float
    std_error_cm: float
    max_error_cm: float
    rmse_cm: float
    percentile_95_cm: float
    within_5cm_percent: float
    within_10cm_percent: float
    success_rate_percent: float
    mean_signal_quality: float
    min_signal_quality: float
    refinement_rate_percent: float
    degraded_rate_percent: float
    method_counts: Dict[str, int] = field(default_factory=dict)
    fallback_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


class AccuracyEvaluator:
    """
    Evaluate engine accuracy over repeated simulated taps.

    True positions are drawn uniformly from [0, max x] x [0, max y] of
    the layout unless a fixed position is configured.
    """

    def __init__(
        self,
        config: Optional[EvaluationConfig] = None,
        engine: Optional[LocalizationEngine] = None,
    ):
        self.config = config or EvaluationConfig()
        self.engine = engine or LocalizationEngine()

    def evaluate(
        self,
        layout_name: str,
        anchors: Sequence[Tuple[float, float]],
        rng: Optional[np.random.Generator] = None,
    ) -> AccuracyReport:
        """
        Run num_trials localizations on one layout.

        Args:
            layout_name: Name recorded in the report
            anchors: Anchor layout
            rng: Random generator (seeded from config if None)

        Returns:
            AccuracyReport
        """
        config = self.config
        rng = rng if rng is not None else np.random.default_rng(config.seed)
        anchor_arr = np.asarray(anchors, dtype=float)
        upper = anchor_arr.max(axis=0)

        errors: List[float] = []
        qualities: List[float] = []
        refined = 0
        methods: Counter = Counter()
        fallbacks = FallbackTally()

        for _ in range(config.num_trials):
            if config.fixed_position is not None:
                true_pos = config.fixed_position
            else:
                true_pos = (rng.random() * upper[0], rng.random() * upper[1])

            estimate = self.engine.localize(
                true_pos, anchor_arr, config.noise_level, config.multipath_factor, rng=rng
            )
            errors.append(estimate.error_m)
            qualities.append(estimate.signal_quality)
            refined += int(estimate.refined)
            if estimate.selected_method:
                methods[estimate.selected_method] += 1
            fallbacks.add(estimate.fallbacks)

        errors_cm = np.array(errors) * 100.0
        n = len(errors_cm)
        report = AccuracyReport(
            layout_name=layout_name,
            num_anchors=len(anchor_arr),
            num_trials=n,
            mean_error_cm=float(np.mean(errors_cm)),
            std_error_cm=float(np.std(errors_cm)),
            max_error_cm=float(np.max(errors_cm)),
            rmse_cm=float(np.sqrt(np.mean(errors_cm ** 2))),
            percentile_95_cm=float(np.percentile(errors_cm, 95)),
            within_5cm_percent=float(np.sum(errors_cm <= 5.0) / n * 100.0),
            within_10cm_percent=float(np.sum(errors_cm <= 10.0) / n * 100.0),
            success_rate_percent=float(
                np.sum(errors_cm < config.success_threshold_m * 100.0) / n * 100.0
            ),
            mean_signal_quality=float(np.mean(qualities)),
            min_signal_quality=float(np.min(qualities)),
            refinement_rate_percent=refined / n * 100.0,
            degraded_rate_percent=fallbacks.degraded_rate(),
            method_counts=dict(methods),
            fallback_counts=fallbacks.as_dict(),
        )

        logger.info(
            "%s: mean error %.2f cm, <10cm %.1f%%, <5cm %.1f%%, degraded %.1f%%",
            layout_name, report.mean_error_cm,
            report.within_10cm_percent, report.within_5cm_percent,
            report.degraded_rate_percent,
        )
        return report


def evaluate_all_layouts(
    config: Optional[EvaluationConfig] = None,
    layouts: Optional[Dict[str, Sequence[Tuple[float, float]]]] = None,
    engine: Optional[LocalizationEngine] = None,
) -> Dict[str, AccuracyReport]:
    """
    Evaluate every layout with one shared random generator.

    Args:
        config: Evaluation configuration
        layouts: Layouts by name (defaults to ANCHOR_LAYOUTS)
        engine: Engine to evaluate (defaults to a new LocalizationEngine)

    Returns:
        Reports keyed by layout name
    """
    evaluator = AccuracyEvaluator(config, engine)
    rng = np.random.default_rng(evaluator.config.seed)
    layouts = layouts if layouts is not None else ANCHOR_LAYOUTS
    return {
        name: evaluator.evaluate(name, anchors, rng=rng)
        for name, anchors in layouts.items()
    }
