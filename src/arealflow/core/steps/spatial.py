"""Spatial pipeline steps with registry integration.

Each step:
- Inherits from Step base class
- Registers outputs via FeatureProvenance
- Attaches derived artefacts (graph, weights) to the UnitFrame
- Supports Pydantic config models for validation
"""

from __future__ import annotations

from typing import Literal

import polars as pl
from pydantic import BaseModel, Field, model_validator

from arealflow.core.autocorrelation import (
    DEFAULT_HIGH_THRESHOLD,
    DEFAULT_LOW_THRESHOLD,
    gi_star,
)
from arealflow.core.contiguity import build_queen_graph
from arealflow.core.geometry import DEFAULT_VERTEX_TOLERANCE
from arealflow.core.pipeline import Step
from arealflow.core.schema import FeatureProvenance
from arealflow.core.unit_frame import UnitFrame
from arealflow.core.utils import get_logger
from arealflow.core.weights import SpatialWeights

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Pydantic Config Models for Step Parameters
# -----------------------------------------------------------------------------


class ContiguityConfig(BaseModel):
    """Configuration for queen contiguity step."""

    vertex_tolerance: float = Field(
        default=DEFAULT_VERTEX_TOLERANCE, gt=0, description="Shared-vertex tolerance"
    )
    prefilter: bool = Field(
        default=True, description="Use the bounding-box spatial index before vertex checks"
    )


class SpatialWeightsConfig(BaseModel):
    """Configuration for spatial weights step."""

    transform: Literal["B", "R"] = Field(
        default="B", description="B = binary, R = row-standardized"
    )
    include_self: bool = Field(default=True, description="Add a self-loop to every row")


class GetisOrdConfig(BaseModel):
    """Configuration for Getis-Ord Gi* step."""

    value_col: str = Field(..., description="Column to compute hotspot statistics for")
    high_threshold: float = Field(
        default=DEFAULT_HIGH_THRESHOLD, description="z-score cutoff for HIGH_CLUSTER"
    )
    low_threshold: float = Field(
        default=DEFAULT_LOW_THRESHOLD, description="z-score cutoff for LOW_CLUSTER"
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> GetisOrdConfig:
        if not self.low_threshold < self.high_threshold:
            raise ValueError("low_threshold must be below high_threshold")
        return self


# -----------------------------------------------------------------------------
# Spatial Steps
# -----------------------------------------------------------------------------


class ContiguityStep(Step):
    """Build the queen contiguity graph from unit boundaries.

    Inputs:
        - id_col, geometry_col from UnitSchema

    Outputs:
        - NeighborGraph attached as ``unit_frame.graph``
        - n_neighbors column (graph degree)
    """

    provides = frozenset({"graph"})

    def __init__(
        self,
        vertex_tolerance: float = DEFAULT_VERTEX_TOLERANCE,
        prefilter: bool = True,
    ) -> None:
        self.vertex_tolerance = vertex_tolerance
        self.prefilter = prefilter

    def run(self, unit_frame: UnitFrame) -> UnitFrame:
        """Execute contiguity graph construction."""
        schema = unit_frame.schema
        ids = unit_frame.unit_ids()
        graph = build_queen_graph(
            ids,
            unit_frame.geometries(),
            tolerance=self.vertex_tolerance,
            prefilter=self.prefilter,
        )

        degrees = graph.cardinalities
        result = unit_frame.with_unit_columns(
            {"n_neighbors": pl.Series([degrees[unit_id] for unit_id in ids], dtype=pl.UInt32)}
        )

        provenance = FeatureProvenance(
            produced_by="ContiguityStep",
            inputs=[schema.id_col, schema.geometry_col],
            tags={"spatial"},
            description="Queen contiguity degree",
            metadata={
                "vertex_tolerance": self.vertex_tolerance,
                "n_edges": graph.n_edges,
                "n_islands": len(graph.isolates),
                "invalid_ids": list(graph.invalid_ids),
            },
        )

        result = result.with_graph(graph).with_metadata(vertex_tolerance=self.vertex_tolerance)
        return result.register_feature(
            "n_neighbors",
            {"source_step": "ContiguityStep", "inputs": [schema.geometry_col]},
            provenance=provenance,
        )

    def __repr__(self) -> str:
        return f"ContiguityStep(vertex_tolerance={self.vertex_tolerance})"


class SpatialWeightsStep(Step):
    """Materialise spatial weights from the attached contiguity graph.

    Inputs:
        - ``unit_frame.graph`` (run ContiguityStep first)

    Outputs:
        - SpatialWeights attached as ``unit_frame.weights``
    """

    requires = frozenset({"graph"})
    provides = frozenset({"weights"})

    def __init__(self, transform: Literal["B", "R"] = "B", include_self: bool = True) -> None:
        self.transform = transform
        self.include_self = include_self

    def run(self, unit_frame: UnitFrame) -> UnitFrame:
        """Execute weights materialisation."""
        if unit_frame.graph is None:
            raise ValueError(
                "SpatialWeightsStep requires a contiguity graph; run ContiguityStep first"
            )

        weights = SpatialWeights.from_graph(unit_frame.graph)
        if self.include_self:
            weights = weights.with_self_loops()
        if self.transform == "R":
            weights = weights.row_standardized()

        logger.info("Materialised %r", weights)
        return unit_frame.with_weights(weights)

    def __repr__(self) -> str:
        return f"SpatialWeightsStep(transform={self.transform!r}, include_self={self.include_self})"


class GetisOrdStep(Step):
    """Compute the Getis-Ord Gi* hotspot statistic.

    Scores on self-included binary weights: attached weights of that form are
    used as-is; otherwise they are derived from the attached graph.

    Inputs:
        - value_col to compute hotspot statistics for
        - ``unit_frame.graph`` (attached weights are reused when self-included binary)

    Outputs:
        - {value_col}_gi_star: Gi* z-score (null when undefined)
        - {value_col}_gi_p: two-tailed normal p-value
        - {value_col}_hotspot: HIGH_CLUSTER, LOW_CLUSTER, NONE or UNDEFINED
    """

    requires = frozenset({"graph"})

    def __init__(
        self,
        value_col: str,
        high_threshold: float = DEFAULT_HIGH_THRESHOLD,
        low_threshold: float = DEFAULT_LOW_THRESHOLD,
    ) -> None:
        self.value_col = value_col
        self.high_threshold = high_threshold
        self.low_threshold = low_threshold

    def _star_weights(self, unit_frame: UnitFrame) -> SpatialWeights:
        weights = unit_frame.weights
        if weights is not None and weights.transform == "B" and weights.self_included:
            return weights
        if unit_frame.graph is None:
            raise ValueError("GetisOrdStep requires a contiguity graph; run ContiguityStep first")
        if weights is not None:
            logger.info("Attached %r is not self-included binary; deriving Gi* weights", weights)
        return SpatialWeights.from_graph(unit_frame.graph).with_self_loops()

    def run(self, unit_frame: UnitFrame) -> UnitFrame:
        """Execute Getis-Ord Gi* computation."""
        if self.value_col not in unit_frame.lazy_frame.collect_schema():
            raise ValueError(f"Column '{self.value_col}' not found in unit table")

        gi_col = f"{self.value_col}_gi_star"
        p_col = f"{self.value_col}_gi_p"
        hotspot_col = f"{self.value_col}_hotspot"

        weights = self._star_weights(unit_frame)
        ids = unit_frame.unit_ids()
        results = gi_star(
            weights,
            unit_frame.attribute_values(self.value_col),
            high_threshold=self.high_threshold,
            low_threshold=self.low_threshold,
        )
        by_id = {result.id: result for result in results}
        ordered = [by_id[unit_id] for unit_id in ids]

        result = unit_frame.with_unit_columns(
            {
                gi_col: pl.Series([r.z_score for r in ordered], dtype=pl.Float64),
                p_col: pl.Series([r.p_value for r in ordered], dtype=pl.Float64),
                hotspot_col: pl.Series([r.category.value for r in ordered], dtype=pl.Utf8),
            }
        )

        provenance = FeatureProvenance(
            produced_by="GetisOrdStep",
            inputs=[self.value_col, unit_frame.schema.id_col],
            tags={"spatial", "statistic"},
            description=f"Getis-Ord Gi* for {self.value_col}",
            metadata={
                "high_threshold": self.high_threshold,
                "low_threshold": self.low_threshold,
            },
        )

        for name in (gi_col, p_col, hotspot_col):
            result = result.register_feature(
                name,
                {"source_step": "GetisOrdStep", "value_col": self.value_col},
                provenance=provenance,
            )

        return result

    def __repr__(self) -> str:
        return f"GetisOrdStep(value_col={self.value_col!r})"
