"""
Fare Collection (FC) Core Package.

UWB positioning engine for a multi-modal (metro, bus, river launch)
fare-collection simulation.

Package structure:
- proto: Value types (measurement sets, position estimates)
- localization: GDOP weighting, candidate estimators, selection, refinement
- domain: Station anchor layouts, Monte Carlo accuracy evaluation
- metrics: Fallback reason codes and their aggregation
"""

__version__ = "0.1.0"
__author__ = "UWB Fare Collection Team"

from .localization import LocalizationEngine, EngineConfig, localize

__all__ = ['LocalizationEngine', 'EngineConfig', 'localize']
