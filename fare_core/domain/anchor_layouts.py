"""
Station Anchor Layouts.

Anchor coordinates (m) for the gate areas simulated by the fare system.
The first anchor of each layout is the reference for TDOA and AoA.
"""

from typing import Dict, List, Tuple

Layout = List[Tuple[float, float]]

# Standard 15m x 10m concourse, four corners plus center
STANDARD_5_ANCHOR: Layout = [
    (0.0, 0.0), (15.0, 0.0), (15.0, 10.0), (0.0, 10.0), (7.5, 5.0),
]

# 20m x 15m hall with two extra interior anchors
ENHANCED_7_ANCHOR: Layout = [
    (0.0, 0.0), (20.0, 0.0), (20.0, 15.0), (0.0, 15.0),
    (10.0, 7.5), (5.0, 3.0), (18.75, 15.0),
]

# 25m x 20m interchange, corners, center and edge midpoints
MAXIMUM_9_ANCHOR: Layout = [
    (0.0, 0.0), (25.0, 0.0), (25.0, 20.0), (0.0, 20.0),
    (12.5, 10.0), (6.25, 5.0), (18.75, 15.0), (12.5, 0.0), (12.5, 20.0),
]

# Small irregular layout used for engine self-tests
SELF_TEST_4_ANCHOR: Layout = [
    (0.0, 0.0), (10.0, 0.0), (5.0, 8.0), (2.0, 6.0),
]

ANCHOR_LAYOUTS: Dict[str, Layout] = {
    'standard_5_anchor': STANDARD_5_ANCHOR,
    'enhanced_7_anchor': ENHANCED_7_ANCHOR,
    'maximum_9_anchor': MAXIMUM_9_ANCHOR,
    'self_test_4_anchor': SELF_TEST_4_ANCHOR,
}


def get_layout(name: str) -> Layout:
    """
    Look up a layout by name.

    Raises:
        KeyError: If the name is unknown (message lists known names)
    """
    try:
        return list(ANCHOR_LAYOUTS[name])
    except KeyError:
        known = ", ".join(sorted(ANCHOR_LAYOUTS))
        raise KeyError(f"Unknown anchor layout '{name}' (known: {known})") from None
