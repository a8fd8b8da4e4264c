"""
Registered Step implementations for contiguity, weights and hotspot statistics.

All steps in this package:
- Inherit from arealflow.core.pipeline.Step
- Declare config models via the registry
- Update UnitSchema with provenance tracking
"""

from arealflow.core.steps.registration import get_default_registry, register_builtin_steps
from arealflow.core.steps.spatial import ContiguityStep, GetisOrdStep, SpatialWeightsStep
from arealflow.core.steps.validation import (
    ValidationReport,
    ValidationResult,
    validate_binary_row_sums,
    validate_contiguity_artifacts,
    validate_graph_symmetry,
    validate_invalid_geometries,
    validate_no_self_edges,
    validate_self_loops,
    validate_weights_membership,
)

__all__ = [
    # Registration
    "get_default_registry",
    "register_builtin_steps",
    # Spatial steps
    "ContiguityStep",
    "GetisOrdStep",
    "SpatialWeightsStep",
    # Validation utilities
    "ValidationReport",
    "ValidationResult",
    "validate_binary_row_sums",
    "validate_contiguity_artifacts",
    "validate_graph_symmetry",
    "validate_invalid_geometries",
    "validate_no_self_edges",
    "validate_self_loops",
    "validate_weights_membership",
]
