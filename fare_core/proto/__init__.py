"""
Protocol Module: Value types passed into and out of the positioning engine.

All types are plain per-call records; nothing persists across calls.
"""

from .measurement import (
    MeasurementSet,
    SPEED_OF_LIGHT_M_S,
)
from .position_estimate import (
    PositionEstimate,
    FixType,
    create_degenerate_estimate,
)

__all__ = [
    'MeasurementSet',
    'SPEED_OF_LIGHT_M_S',
    'PositionEstimate',
    'FixType',
    'create_degenerate_estimate',
]
