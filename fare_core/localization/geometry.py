"""
Anchor Geometry Utilities and GDOP Weighting.

Helpers shared by every stage of the positioning pipeline: input
normalization, anchor centroid, implied ranges, and the geometric
dilution of precision (GDOP) weight used to blend estimates toward
the centroid.
"""

from typing import Optional, Sequence
import logging
import numpy as np

from fare_core.metrics import FallbackRecorder

logger = logging.getLogger(__name__)

# GDOP weight returned for degenerate geometry
GDOP_FALLBACK_WEIGHT = 0.8
GDOP_MIN_WEIGHT = 0.7
GDOP_MAX_WEIGHT = 1.0
GDOP_SENSITIVITY = 0.01
GDOP_DET_THRESHOLD = 1e-12


def as_point(point) -> np.ndarray:
    """
    Convert an (x, y) pair to a float vector.

    Raises:
        ValueError: If the input is not a 2-element point
    """
    arr = np.asarray(point, dtype=float)
    if arr.shape != (2,):
        raise ValueError(f"Point must have shape (2,), got {arr.shape}")
    return arr


def as_anchor_array(anchors: Sequence) -> np.ndarray:
    """
    Convert an anchor layout to an (N, 2) float array.

    Raises:
        ValueError: If the layout is empty or not a list of (x, y) pairs
    """
    arr = np.asarray(anchors, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Anchors must have shape (N, 2), got {arr.shape}")
    if arr.shape[0] == 0:
        raise ValueError("At least one anchor is required")
    return arr


def centroid(anchors: np.ndarray) -> np.ndarray:
    """Mean of the anchor positions."""
    return np.mean(anchors, axis=0)


def implied_distances(position: np.ndarray, anchors: np.ndarray) -> np.ndarray:
    """Euclidean distance from position to every anchor."""
    return np.linalg.norm(anchors - position, axis=1)


def distance_deviation(position: np.ndarray, anchors: np.ndarray, distances: np.ndarray) -> float:
    """L2 norm of (implied ranges - measured ranges)."""
    return float(np.linalg.norm(implied_distances(position, anchors) - distances))


def mean_abs_deviation(position: np.ndarray, anchors: np.ndarray, distances: np.ndarray) -> float:
    """Mean absolute difference between implied and measured ranges."""
    return float(np.mean(np.abs(implied_distances(position, anchors) - distances)))


def max_anchor_spread(anchors: np.ndarray) -> float:
    """Largest anchor distance from the anchor centroid."""
    return float(np.max(np.linalg.norm(anchors - centroid(anchors), axis=1)))


def is_finite_point(point: np.ndarray) -> bool:
    """Check that every coordinate is finite."""
    return bool(np.all(np.isfinite(point)))


def gdop_weight(
    anchors: np.ndarray,
    target: Optional[np.ndarray] = None,
    recorder: Optional[FallbackRecorder] = None,
) -> float:
    """
    Compute geometry confidence weight from anchor layout.

    The geometry matrix holds the offsets of anchors 1..N-1 from anchor 0;
    GDOP = sqrt(trace((GᵀG)⁻¹)) and weight = 1 / (1 + 0.01 * GDOP).

    Args:
        anchors: (N, 2) anchor positions
        target: Tag position; accepted for interface symmetry, the
            offset-based geometry matrix does not depend on it
        recorder: Receives the fallback reason for singular geometry

    Returns:
        Weight clamped to [0.7, 1.0]; 0.8 for N < 3 or singular geometry
    """
    recorder = recorder if recorder is not None else FallbackRecorder()

    if len(anchors) < 3:
        return GDOP_FALLBACK_WEIGHT

    G = anchors[1:] - anchors[0]
    GTG = G.T @ G

    try:
        if np.linalg.det(GTG) > GDOP_DET_THRESHOLD:
            gdop = np.sqrt(np.trace(np.linalg.inv(GTG)))
            weight = 1.0 / (1.0 + GDOP_SENSITIVITY * gdop)
        else:
            recorder.record('degenerate_geometry')
            logger.debug("Singular GDOP geometry matrix, using weight %.2f", GDOP_FALLBACK_WEIGHT)
            weight = GDOP_FALLBACK_WEIGHT
    except np.linalg.LinAlgError:
        recorder.record('degenerate_geometry')
        weight = GDOP_FALLBACK_WEIGHT

    if not np.isfinite(weight):
        weight = GDOP_FALLBACK_WEIGHT

    return float(np.clip(weight, GDOP_MIN_WEIGHT, GDOP_MAX_WEIGHT))


def signal_quality(weight: float) -> float:
    """
    Signal quality score in [90, 100] from the GDOP weight.

    Notes:
        Linear in the geometry weight only; it does not reflect any
        received-signal metric and always reports high quality.
    """
    return 90.0 + 10.0 * weight
