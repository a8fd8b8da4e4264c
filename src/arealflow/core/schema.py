"""Schema and configuration models for areal units and hotspot analysis."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from arealflow.core.geometry import DEFAULT_VERTEX_TOLERANCE


class HotspotCategory(str, Enum):
    """Classification of a unit's Gi* z-score."""

    HIGH_CLUSTER = "HIGH_CLUSTER"
    LOW_CLUSTER = "LOW_CLUSTER"
    NONE = "NONE"
    UNDEFINED = "UNDEFINED"

    def __str__(self) -> str:  # pragma: no cover - trivial wrapper
        return self.value


class FeatureProvenance(BaseModel):
    """Record describing how a feature was produced during a pipeline run."""

    produced_by: str | None = None
    inputs: list[str] = Field(default_factory=list)
    tags: set[str] = Field(default_factory=set)
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UnitSchema(BaseModel):
    """
    Describes the column structure of an areal unit table.

    Attributes:
        id_col: Name of the unique unit id column
        geometry_col: Name of the boundary column (WKT strings or shapely objects)
        attribute_cols: Numeric attribute columns available for statistics
        feature_provenance: Provenance metadata keyed by feature name
    """

    id_col: str = "id"
    geometry_col: str = "geometry"
    attribute_cols: list[str] = Field(default_factory=list)
    feature_provenance: dict[str, FeatureProvenance] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_columns(self) -> UnitSchema:
        if self.id_col == self.geometry_col:
            raise ValueError("id_col and geometry_col must be different columns")
        clashes = {self.id_col, self.geometry_col} & set(self.attribute_cols)
        if clashes:
            raise ValueError(f"attribute_cols overlap id/geometry columns: {sorted(clashes)}")
        return self

    def compatibility_issues(self, other: UnitSchema) -> list[str]:
        """Return human-readable compatibility issues when transitioning to *other*."""

        issues: list[str] = []

        if self.id_col != other.id_col:
            issues.append(f"id_col mismatch: {self.id_col!r} -> {other.id_col!r}")

        if self.geometry_col != other.geometry_col:
            issues.append(
                f"geometry_col mismatch: {self.geometry_col!r} -> {other.geometry_col!r}"
            )

        missing_attributes = set(self.attribute_cols) - set(other.attribute_cols)
        if missing_attributes:
            issues.append("missing attribute columns: " + ", ".join(sorted(missing_attributes)))

        missing_features = set(self.feature_provenance) - set(other.feature_provenance)
        if missing_features:
            issues.append(
                "missing feature provenance entries: " + ", ".join(sorted(missing_features))
            )

        return issues


class UnitMetadata(BaseModel):
    """
    Metadata about an areal unit dataset.

    Attributes:
        dataset_name: Name of the dataset
        crs: Coordinate reference system label; informational, never transformed
        vertex_tolerance: Tolerance used for the current contiguity graph, if any
        feature_catalog: Registered features and their descriptions
        feature_provenance: Provenance metadata keyed by feature name
        custom: Additional custom metadata
    """

    dataset_name: str
    crs: str | None = None
    vertex_tolerance: float | None = None
    feature_catalog: dict[str, Any] = Field(default_factory=dict)
    feature_provenance: dict[str, FeatureProvenance] = Field(default_factory=dict)
    custom: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class HotspotConfig(BaseModel):
    """
    Options recognised by the hotspot engine.

    Attributes:
        vertex_tolerance: Coordinate-equality tolerance for shared vertices
        include_self: Self-inclusion for the local sum; the engine computes the
            Gi* (star) variant, so only True is accepted
        high_threshold: z-score at or above which a unit is a high-value cluster
        low_threshold: z-score at or below which a unit is a low-value cluster
        prefilter: Use the bounding-box spatial index before vertex checks
    """

    vertex_tolerance: float = Field(default=DEFAULT_VERTEX_TOLERANCE, gt=0)
    include_self: bool = True
    high_threshold: float = 2.0
    low_threshold: float = -2.0
    prefilter: bool = True

    @field_validator("include_self")
    @classmethod
    def _star_only(cls, v: bool) -> bool:
        if not v:
            raise ValueError("include_self=False (the Gi statistic) is not supported; use Gi*")
        return v

    @model_validator(mode="after")
    def _check_thresholds(self) -> HotspotConfig:
        if not self.low_threshold < self.high_threshold:
            raise ValueError(
                f"low_threshold ({self.low_threshold}) must be below "
                f"high_threshold ({self.high_threshold})"
            )
        return self


class AnalysisConfig(BaseModel):
    """
    Configuration for a hotspot analysis run over a unit table.

    Attributes:
        dataset_name: Name of the dataset
        id_col: Unit id column
        geometry_col: Boundary column
        value_cols: Attributes to score
        hotspot: Engine options
        steps: Optional explicit pipeline step definitions for the registry
    """

    dataset_name: str = "units"
    id_col: str = "id"
    geometry_col: str = "geometry"
    value_cols: list[str] = Field(..., min_length=1)
    hotspot: HotspotConfig = Field(default_factory=HotspotConfig)
    steps: list[Any] = Field(default_factory=list)
