"""Arealflow: queen contiguity and Getis-Ord Gi* hotspot analysis for areal units."""

__version__ = "0.1.0"

from arealflow.core.hotspots import ArealUnit, HotspotAnalysis, analyze_hotspots
from arealflow.core.schema import HotspotCategory, HotspotConfig
from arealflow.core.unit_frame import UnitFrame

__all__ = [
    "ArealUnit",
    "HotspotAnalysis",
    "HotspotCategory",
    "HotspotConfig",
    "UnitFrame",
    "analyze_hotspots",
    "__version__",
]
