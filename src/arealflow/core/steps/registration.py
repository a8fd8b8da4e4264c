"""Step registration for built-in spatial steps.

This module registers all built-in steps with the StepRegistry.
It can be called explicitly or discovered via entry points.
"""

from __future__ import annotations

from arealflow.core.registry import StepRegistry
from arealflow.core.steps.spatial import (
    ContiguityConfig,
    ContiguityStep,
    GetisOrdConfig,
    GetisOrdStep,
    SpatialWeightsConfig,
    SpatialWeightsStep,
)


def register_builtin_steps(registry: StepRegistry) -> None:
    """Register all built-in steps with the given registry.

    This function can be called directly or via entry point discovery.

    Args:
        registry: The StepRegistry to register steps with.
    """
    registry.register(
        "contiguity",
        ContiguityStep,
        tags=["spatial"],
        description="Build the queen contiguity graph from shared boundary vertices",
        config_model=ContiguityConfig,
    )

    registry.register(
        "spatial_weights",
        SpatialWeightsStep,
        tags=["spatial", "weights"],
        description="Materialise binary or row-standardized weights from the graph",
        config_model=SpatialWeightsConfig,
    )

    registry.register(
        "getis_ord",
        GetisOrdStep,
        tags=["spatial", "statistic"],
        description="Compute Getis-Ord Gi* hotspot statistics",
        config_model=GetisOrdConfig,
    )


def get_default_registry() -> StepRegistry:
    """Create and return a registry with all built-in steps registered.

    Returns:
        StepRegistry with all built-in steps.
    """
    registry = StepRegistry()
    register_builtin_steps(registry)
    return registry
