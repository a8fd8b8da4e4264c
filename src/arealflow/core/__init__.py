"""Core module containing geometry, contiguity, weights and hotspot primitives."""

from arealflow.core.assembler import AssembledResult, assemble_results, results_to_frame
from arealflow.core.autocorrelation import (
    GlobalBaseline,
    LocalStatisticResult,
    classify_z_score,
    compute_baseline,
    gi_star,
)
from arealflow.core.contiguity import NeighborGraph, build_queen_graph
from arealflow.core.errors import (
    ArealflowError,
    DuplicateUnit,
    InconsistentInput,
    InvalidGeometry,
)
from arealflow.core.geometry import VertexSet, extract_vertices
from arealflow.core.hotspots import ArealUnit, HotspotAnalysis, analyze_hotspots
from arealflow.core.pipeline import Pipeline, Step
from arealflow.core.registry import StepRegistry, StepSpec
from arealflow.core.schema import (
    AnalysisConfig,
    FeatureProvenance,
    HotspotCategory,
    HotspotConfig,
    UnitMetadata,
    UnitSchema,
)
from arealflow.core.unit_frame import UnitFrame
from arealflow.core.weights import SpatialWeights

__all__ = [
    "UnitFrame",
    "UnitSchema",
    "UnitMetadata",
    "FeatureProvenance",
    "AnalysisConfig",
    "HotspotConfig",
    "HotspotCategory",
    "ArealUnit",
    "HotspotAnalysis",
    "analyze_hotspots",
    "VertexSet",
    "extract_vertices",
    "NeighborGraph",
    "build_queen_graph",
    "SpatialWeights",
    "GlobalBaseline",
    "LocalStatisticResult",
    "classify_z_score",
    "compute_baseline",
    "gi_star",
    "AssembledResult",
    "assemble_results",
    "results_to_frame",
    "Pipeline",
    "Step",
    "StepRegistry",
    "StepSpec",
    "ArealflowError",
    "DuplicateUnit",
    "InconsistentInput",
    "InvalidGeometry",
]
