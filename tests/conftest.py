"""
Pytest configuration and shared fixtures for the UWB fare-collection
positioning engine tests.

Provides anchor layouts, seeded random generators and helpers for
building exact measurement sets.
"""

import sys
import math
from pathlib import Path
from typing import List, Tuple

import numpy as np
import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fare_core.proto import MeasurementSet
from fare_core.domain import STANDARD_5_ANCHOR


# =============================================================================
# Anchor Layout Fixtures
# =============================================================================


@pytest.fixture
def standard_anchors() -> np.ndarray:
    """
    Standard 5-anchor concourse layout.

    Corners of a 15m x 10m rectangle plus its center (7.5, 5).
    """
    return np.array(STANDARD_5_ANCHOR, dtype=float)


@pytest.fixture
def square_anchors() -> np.ndarray:
    """Well-spread 4-anchor 10m square."""
    return np.array([(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)])


@pytest.fixture
def near_collinear_anchors() -> np.ndarray:
    """Four anchors almost on a line (poor geometry)."""
    return np.array([(0.0, 0.0), (10.0, 0.01), (20.0, 0.0), (30.0, 0.02)])


@pytest.fixture
def collinear_anchors() -> np.ndarray:
    """Three anchors exactly on the x axis."""
    return np.array([(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)])


@pytest.fixture
def triangle_anchors() -> np.ndarray:
    """Three anchors forming a triangle."""
    return np.array([(0.0, 0.0), (10.0, 0.0), (5.0, 8.66)])


# =============================================================================
# Random Generator Fixtures
# =============================================================================


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible trials."""
    return np.random.default_rng(20240601)


# =============================================================================
# Helper Functions
# =============================================================================


def exact_measurements(position, anchors) -> MeasurementSet:
    """
    Build a noise-free measurement set for a tag at position.

    Args:
        position: Tag (x, y).
        anchors: (N, 2) anchor positions.

    Returns:
        MeasurementSet with exact ranges and TDOA.
    """
    anchors = np.asarray(anchors, dtype=float)
    distances = np.linalg.norm(anchors - np.asarray(position, dtype=float), axis=1)
    return MeasurementSet.from_distances(distances)


def calculate_distance_2d(
    p1: Tuple[float, float], p2: Tuple[float, float]
) -> float:
    """
    Calculate Euclidean distance between two 2D points.

    Args:
        p1: First point (x, y).
        p2: Second point (x, y).

    Returns:
        Distance in the same units as input.
    """
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)
